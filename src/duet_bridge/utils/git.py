"""Git helpers for observation snapshots."""

import logging
import subprocess
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


def run_git(args: List[str], cwd: Path, timeout: int = 30) -> tuple[str, int]:
    """Run a git command, returning (stdout, returncode)."""
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"git {' '.join(args)} failed: {e}")
        return "", 1
    return proc.stdout, proc.returncode


def is_git_repo(path: Path) -> bool:
    _, code = run_git(["rev-parse", "--git-dir"], path)
    return code == 0


def diff_against_head(path: Path, max_lines: int) -> str:
    """``git diff --stat HEAD`` followed by the first ``max_lines`` of the full diff."""
    stat, _ = run_git(["diff", "--stat", "HEAD"], path)
    diff, _ = run_git(["diff", "HEAD"], path)
    diff_lines = diff.splitlines()[:max_lines]
    return f"{stat.rstrip()}\n\n" + "\n".join(diff_lines)
