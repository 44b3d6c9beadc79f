"""Verdict tags exchanged between the agents and the bridge.

Review handoffs end with ``VERDICT: APPROVED`` or ``VERDICT: NEEDS_WORK``; the
initiator confirms with ``VERDICT: CONSENSUS`` (``COMPLETE`` and ``LGTM`` are
accepted synonyms). Scrutiny feedback starts with ``INTERJECT:`` or
``STATUS: OK|SUGGESTION|NOTE``. Anything unrecognised parses as
``Verdict.NONE``, the "no verdict yet" variant, and is never an error.
"""

import re
from enum import Enum


class Verdict(str, Enum):
    STATUS_OK = "STATUS:OK"
    STATUS_SUGGESTION = "STATUS:SUGGESTION"
    STATUS_NOTE = "STATUS:NOTE"
    INTERJECT = "INTERJECT"
    APPROVED = "VERDICT:APPROVED"
    NEEDS_WORK = "VERDICT:NEEDS_WORK"
    CONSENSUS = "VERDICT:CONSENSUS"
    NONE = "NONE"


VERDICT_PATTERN = re.compile(
    r"VERDICT:\s*\**\s*(APPROVED|NEEDS[_ ]WORK|CONSENSUS|COMPLETE|LGTM)\b", re.IGNORECASE
)
INTERJECT_PATTERN = re.compile(r"^\W*INTERJECT:", re.IGNORECASE | re.MULTILINE)
STATUS_PATTERN = re.compile(
    r"^\W*STATUS:\s*\**\s*(OK|SUGGESTION|NOTE)\b", re.IGNORECASE | re.MULTILINE
)

_VERDICT_TAGS = {
    "APPROVED": Verdict.APPROVED,
    "NEEDS_WORK": Verdict.NEEDS_WORK,
    "NEEDS WORK": Verdict.NEEDS_WORK,
    "CONSENSUS": Verdict.CONSENSUS,
    "COMPLETE": Verdict.CONSENSUS,
    "LGTM": Verdict.CONSENSUS,
}

APPROVAL_CLASS = frozenset({Verdict.APPROVED, Verdict.CONSENSUS})
CONSENSUS_CLASS = frozenset({Verdict.CONSENSUS})


def parse_verdict(text: str) -> Verdict:
    """Return the last VERDICT tag in a handoff, or Verdict.NONE."""
    matches = VERDICT_PATTERN.findall(text or "")
    if not matches:
        return Verdict.NONE
    return _VERDICT_TAGS[matches[-1].upper()]


def parse_feedback(text: str) -> Verdict:
    """Classify scrutiny feedback.

    INTERJECT wins over NOTE, which wins over OK/SUGGESTION.
    """
    text = text or ""
    if INTERJECT_PATTERN.search(text):
        return Verdict.INTERJECT
    statuses = {m.upper() for m in STATUS_PATTERN.findall(text)}
    if "NOTE" in statuses:
        return Verdict.STATUS_NOTE
    if "SUGGESTION" in statuses:
        return Verdict.STATUS_SUGGESTION
    if "OK" in statuses:
        return Verdict.STATUS_OK
    return Verdict.NONE


def is_approval(text: str) -> bool:
    return parse_verdict(text) in APPROVAL_CLASS


def is_consensus(text: str) -> bool:
    return parse_verdict(text) in CONSENSUS_CLASS
