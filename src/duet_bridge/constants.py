"""Constants for the duet bridge.

This module defines the defaults used throughout the bridge, including the
shared exchange directory layout, artifact names, polling cadence and the
timeouts that bound every wait.

The bridge pairs two CLI coding agents (Claude Code, Codex, ...) in a single
tmux session and relays work between them through plain-text files.
"""

# =============================================================================
# Session Configuration
# =============================================================================
# Default tmux session name; also names the exchange subdirectory
DEFAULT_SESSION = "pair"

# Agent CLIs launched in the left (A) and right (B) panes
DEFAULT_AGENT_A_COMMAND = "claude"
DEFAULT_AGENT_B_COMMAND = "codex"

# Agent labels, in pane order
AGENT_LABELS = ("A", "B")

# Size of a freshly created tmux session (two side-by-side panes)
TMUX_SESSION_WIDTH = 220
TMUX_SESSION_HEIGHT = 50

# =============================================================================
# Exchange Directory Structure
# =============================================================================
# Root of the shared directory, relative to the project working directory.
# Each session gets its own subdirectory: .bridge/<session>/
BRIDGE_DIR_NAME = ".bridge"

TASK_FILE = "task.md"
PROPOSALS_FILE = "proposals.md"
APPROVED_SCRIPTS_FILE = "approved_scripts.txt"
LOCK_FILE = "bridge.pid"

# Per-agent artifact name templates (label is lowercased)
HANDOFF_TEMPLATE = "{src}_to_{dst}.md"
FEEDBACK_TEMPLATE = "feedback_for_{label}.md"
LIVE_SNAPSHOT_TEMPLATE = "live_{label}.txt"
QUEUED_NOTES_TEMPLATE = "queued_notes_for_{label}.md"
NOTES_TEMPLATE = "notes_for_{label}.md"
INSTRUCTIONS_TEMPLATE = "instructions_{label}.md"

# Paths skipped when collecting files changed during a task
SNAPSHOT_EXCLUDED_DIRS = frozenset(
    {BRIDGE_DIR_NAME, ".git", "__pycache__", "node_modules", ".pytest_cache"}
)
SNAPSHOT_EXCLUDED_SUFFIXES = (".pyc", ".log")

# =============================================================================
# Polling & Idle Detection
# =============================================================================
# Seconds between polls in every wait loop
POLL_INTERVAL = 1.0

# Consecutive unchanged pane fingerprints that count as idle
IDLE_CHECKS = 3

# Seconds to let freshly launched CLIs draw their first screen
STARTUP_DELAY = 5.0

# =============================================================================
# Turn Monitoring
# =============================================================================
TURN_TIMEOUT = 3600          # max seconds per agent turn
STALL_TIMEOUT = 600          # seconds before a turn counts as stalled (0 disables)
OBSERVE_INTERVAL = 45        # seconds between periodic scrutiny requests
FIRST_OBSERVE_DELAY = 60     # grace period before the first scrutiny of a task
ERROR_PATIENCE = 1           # transient error cycles tolerated before escalating
ERROR_COOLDOWN = 120         # seconds after an error escalation before re-checking
SCRUTINY_TIMEOUT = 90        # seconds the observer gets to write feedback
SELECTION_TIMEOUT = 120      # seconds to pick the next proposal in explore mode
MAX_ROUNDS = 0               # review rounds per task, 0 means unlimited

# =============================================================================
# Pane Capture
# =============================================================================
MONITOR_CAPTURE_LINES = 50   # lines scanned for errors on every tick
SNAPSHOT_CAPTURE_LINES = 40  # lines written into live_<label>.txt
PROMPT_CAPTURE_LINES = 25    # lines scanned for permission prompts
SNAPSHOT_MAX_FILES = 30      # changed files listed per snapshot
SNAPSHOT_FILE_HEAD_LINES = 40
SNAPSHOT_DIFF_MAX_LINES = 200

# =============================================================================
# Auto-Approval
# =============================================================================
# Seconds before re-sending keys for a prompt that is still on screen
APPROVAL_RETRY_AFTER = 5.0

# A "don't ask again" entry is only selected when at least this many options
# are shown; on a two-option menu the second entry is the rejection
ALWAYS_OPTION_MIN_CHOICES = 3

# =============================================================================
# Token Accounting
# =============================================================================
# Rough characters-per-token ratio for English text
CHARS_PER_TOKEN = 4

# =============================================================================
# REPL
# =============================================================================
EXIT_COMMANDS = frozenset({"exit", "quit", "q", "bye"})
