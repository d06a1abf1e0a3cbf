"""
Line-based diff between two LaTeX documents.

Deterministic and purely textual: no interpretation of LaTeX.
"""

import difflib
from dataclasses import dataclass, field
from typing import List


@dataclass
class DiffResult:
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)


def generate_diff(base_content: str, proposed_content: str) -> DiffResult:
    base_lines = base_content.splitlines()
    proposed_lines = proposed_content.splitlines()
    result = DiffResult()

    matcher = difflib.SequenceMatcher(None, base_lines, proposed_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            result.unchanged.extend(line for line in base_lines[i1:i2] if line)
            continue
        if tag in ("replace", "delete"):
            result.removed.extend(line for line in base_lines[i1:i2] if line)
        if tag in ("replace", "insert"):
            result.added.extend(line for line in proposed_lines[j1:j2] if line)
    return result


def generate_unified_diff(
    base_content: str,
    proposed_content: str,
    base_label: str = "base",
    proposed_label: str = "proposed",
) -> str:
    return "".join(difflib.unified_diff(
        base_content.splitlines(keepends=True),
        proposed_content.splitlines(keepends=True),
        fromfile=f"resume.tex ({base_label})",
        tofile=f"resume.tex ({proposed_label})",
    ))


def count_changes(base_content: str, proposed_content: str) -> dict:
    diff = generate_diff(base_content, proposed_content)
    return {
        "added_lines": len(diff.added),
        "removed_lines": len(diff.removed),
        "unchanged_lines": len(diff.unchanged),
    }
