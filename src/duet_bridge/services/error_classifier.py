"""Error severity classification for captured pane text.

Only structural indicators count: a typed ``FooError:`` prefix, a traceback
header or a shell failure phrase. Prose that talks about "error handling"
does not. Patience and escalation live in the turn monitor.
"""

import re

from duet_bridge.models.observation import ErrorSeverity
from duet_bridge.utils.terminal import clean_terminal_output

# Fatal signals, core dumps and forced termination
SERIOUS_ERROR_PATTERN = re.compile(
    r"Segmentation fault|SIGSEGV|SIGBUS|Bus error|Aborted \(core dumped\)|Killed\s*$",
    re.MULTILINE,
)

TRANSIENT_ERROR_PATTERN = re.compile(
    r"Traceback \(most recent"
    r"|[A-Z][a-z]*Error:"
    r"|[A-Z][a-z]*Exception:"
    r"|FAILED"
    r"|panic:"
    r"|command not found"
    r"|No such file or directory"
    r"|Permission denied"
    r"|exit code [1-9]"
    r"|Cannot find module"
    r"|Could not resolve"
)


def classify(text: str) -> ErrorSeverity:
    if not text:
        return ErrorSeverity.NONE
    clean = clean_terminal_output(text)
    if SERIOUS_ERROR_PATTERN.search(clean):
        return ErrorSeverity.SERIOUS
    if TRANSIENT_ERROR_PATTERN.search(clean):
        return ErrorSeverity.TRANSIENT
    return ErrorSeverity.NONE
