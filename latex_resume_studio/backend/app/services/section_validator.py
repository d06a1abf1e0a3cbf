"""
Accept/reject check for a generated section before it may replace the original.

Pure function, no I/O. A rejected candidate is never an error: the caller
keeps the original content for that section.
"""

import re
from dataclasses import dataclass
from typing import Optional

from app.services.latex_parser import HEADER_RE, MARKER_END_RE, MARKER_START_RE

# Backslash-prefixed tokens: \textbf, \item, \\, \& ...
COMMAND_RE = re.compile(r"\\(?:[A-Za-z@]+|.)")

REFUSAL_PHRASES = (
    "i cannot",
    "i can't",
    "i can’t",
    "i am unable",
    "i'm unable",
)

MIN_COMMAND_RATIO = 0.7


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    reason: Optional[str] = None


ACCEPTED = ValidationResult(accepted=True)


def _balanced(text: str, opening: str, closing: str) -> bool:
    depth = 0
    for ch in text:
        if ch == opening:
            depth += 1
        elif ch == closing:
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def count_commands(text: str) -> int:
    return len(COMMAND_RE.findall(text))


def validate_section(original: str, candidate: str) -> ValidationResult:
    if not candidate or not candidate.strip():
        return ValidationResult(False, "empty candidate")

    if not _balanced(candidate, "{", "}"):
        return ValidationResult(False, "unbalanced braces")

    if not _balanced(candidate, "[", "]"):
        return ValidationResult(False, "unbalanced brackets")

    if "```" in candidate:
        return ValidationResult(False, "leftover code fence")

    lowered = candidate.lower()
    for phrase in REFUSAL_PHRASES:
        if phrase in lowered:
            return ValidationResult(False, f"refusal phrase '{phrase}'")

    # Section markers inside a section would split it on the next extraction
    if MARKER_START_RE.search(candidate) or MARKER_END_RE.search(candidate):
        return ValidationResult(False, "section marker inside content")

    original_commands = count_commands(original)
    candidate_commands = count_commands(candidate)
    if candidate_commands < MIN_COMMAND_RATIO * original_commands:
        return ValidationResult(
            False,
            f"markup loss ({candidate_commands} of {original_commands} commands kept)",
        )

    if HEADER_RE.search(original) and not HEADER_RE.search(candidate):
        return ValidationResult(False, "section header removed")

    return ACCEPTED
