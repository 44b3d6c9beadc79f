"""Terminal text utilities."""

import hashlib
import re

# CSI sequences (colors, cursor movement, erase) and OSC sequences (titles, links)
ANSI_CODE_PATTERN = r"\x1b\[[0-?]*[ -/]*[@-~]"
OSC_PATTERN = r"\x1b\][^\x07]*(?:\x07|\x1b\\)"


def clean_terminal_output(output: str) -> str:
    """Strip control sequences and normalize line endings for parsing."""
    output = re.sub(OSC_PATTERN, "", output)
    output = re.sub(ANSI_CODE_PATTERN, "", output)
    return output.replace("\r\n", "\n").replace("\r", "\n")


def fingerprint(text: str) -> str:
    """Content hash used to tell whether a pane changed between polls."""
    return hashlib.md5(text.encode("utf-8", errors="replace")).hexdigest()


def tail_excerpt(text: str, max_lines: int = 8, max_chars_per_line: int = 160) -> str:
    """Build a compact single-line tail excerpt for logs."""
    lines = [line.rstrip() for line in text.splitlines() if line.strip()]
    if not lines:
        return ""

    clipped_lines = []
    for line in lines[-max_lines:]:
        if len(line) > max_chars_per_line:
            clipped_lines.append(f"{line[:max_chars_per_line]}...")
        else:
            clipped_lines.append(line)

    return " | ".join(clipped_lines)


def one_line(text: str, limit: int = 300) -> str:
    """Collapse text to a single line for embedding in an instruction."""
    collapsed = " ".join(text.split())
    return collapsed[:limit]
