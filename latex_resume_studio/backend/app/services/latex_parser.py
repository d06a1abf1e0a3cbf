"""
LaTeX section engine: split a resume document into typed sections and
reassemble it.

Extraction strategy, in priority order:
  1. Boundary detection on \\begin{document} / \\end{document}
  2. Machine-written markers (% SECTION: <TYPE> ... % END SECTION)
  3. Heuristic \\section{...} / \\subsection{...} headers
  4. Whole body as a single OTHER section

extract_sections() never raises. When it cannot classify something it
degrades to coarser sections instead, and logs the degradation.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from app.schemas.sections import SectionType

logger = logging.getLogger(__name__)

BEGIN_DOCUMENT_RE = re.compile(r"\\begin\{document\}")
END_DOCUMENT_RE = re.compile(r"\\end\{document\}")

MARKER_START_RE = re.compile(r"^[ \t]*% SECTION:[ \t]*(\w+)[ \t]*(?:\r?\n|$)", re.MULTILINE)
MARKER_END_RE = re.compile(r"^[ \t]*% END SECTION[ \t]*(?:\r?\n|$)", re.MULTILINE)

# \section{...}, \section*{...}, \subsection{...}, \subsection*{...}
HEADER_RE = re.compile(r"\\(?:sub)?section\*?\{([^}]*)\}")

# Checked in order; the first matching type wins for a header
HEADER_KEYWORDS: List[Tuple[SectionType, re.Pattern]] = [
    (SectionType.EXPERIENCE, re.compile(
        r"experience|employment|work\s*history|career", re.IGNORECASE)),
    (SectionType.EDUCATION, re.compile(
        r"education|academic|qualification|training", re.IGNORECASE)),
    (SectionType.PROJECTS, re.compile(
        r"projects|portfolio|work\s*samples", re.IGNORECASE)),
    (SectionType.SKILLS, re.compile(
        r"skills|technologies|competencies|expertise|proficiencies", re.IGNORECASE)),
    (SectionType.ACHIEVEMENTS, re.compile(
        r"achievements|awards|honou?rs|recognitions|accomplishments", re.IGNORECASE)),
]

SECTION_MARKER = "% SECTION: {section_type}\n"
END_MARKER = "\n% END SECTION\n\n"


@dataclass
class ExtractedSection:
    section_type: SectionType
    content: str
    order_index: int
    is_locked: bool = False


@dataclass
class ParsedDocument:
    preamble: str
    sections: List[ExtractedSection] = field(default_factory=list)
    postamble: str = ""
    # True when the input had no \begin{document}; such documents are
    # reassembled without markers so they round-trip exactly
    fragment: bool = False


@dataclass
class RoundTripReport:
    is_valid: bool
    original_length: int
    reconstructed_length: int
    sections_found: int
    errors: List[str] = field(default_factory=list)


def _parse_section_type(name: str) -> Optional[SectionType]:
    try:
        return SectionType(name.upper())
    except ValueError:
        return None


def classify_header(title: str) -> Optional[SectionType]:
    """Map a header title like 'Work Experience' to a section type, or None."""
    for section_type, pattern in HEADER_KEYWORDS:
        if pattern.search(title):
            return section_type
    return None


def _fold_blocks(blocks: Iterable[Tuple[Optional[SectionType], str]]) -> List[ExtractedSection]:
    """
    Turn (type, text) blocks into sections with contiguous order indices.

    Blocks that cannot stand alone (type None, or a type already taken) are
    appended to the preceding section; leading ones are carried into the next
    section. Text is never dropped.
    """
    sections: List[ExtractedSection] = []
    seen = set()
    carried: List[str] = []

    for section_type, text in blocks:
        text = text.strip()
        if not text:
            continue
        if section_type is None or section_type in seen:
            if sections:
                sections[-1].content = f"{sections[-1].content}\n\n{text}"
            else:
                carried.append(text)
            continue
        seen.add(section_type)
        content = "\n\n".join(carried + [text])
        carried = []
        sections.append(ExtractedSection(
            section_type=section_type,
            content=content,
            order_index=len(sections),
        ))

    if carried:
        # Nothing classifiable at all: keep the text as OTHER
        sections.append(ExtractedSection(
            section_type=SectionType.OTHER,
            content="\n\n".join(carried),
            order_index=len(sections),
        ))
    return sections


def _extract_marker_sections(body: str) -> List[ExtractedSection]:
    starts = list(MARKER_START_RE.finditer(body))
    if not starts:
        return []

    blocks: List[Tuple[Optional[SectionType], str]] = []
    known = 0
    cursor = 0
    for i, start in enumerate(starts):
        # Loose text between the previous block and this marker
        if start.start() > cursor:
            blocks.append((None, body[cursor:start.start()]))

        next_start = starts[i + 1].start() if i + 1 < len(starts) else len(body)
        end = MARKER_END_RE.search(body, start.end(), next_start)
        content_end = end.start() if end else next_start
        cursor = end.end() if end else next_start

        section_type = _parse_section_type(start.group(1))
        if section_type is None:
            logger.warning(f"[PARSER] Unknown section marker '{start.group(1)}', folding into neighbour")
        else:
            known += 1
        blocks.append((section_type, body[start.end():content_end]))

    if cursor < len(body):
        blocks.append((None, body[cursor:]))

    if known == 0:
        # Only unknown markers: not a marked document after all
        return []
    return _fold_blocks(blocks)


def _extract_heuristic_sections(body: str) -> List[ExtractedSection]:
    boundaries: List[Tuple[int, SectionType]] = []
    for match in HEADER_RE.finditer(body):
        section_type = classify_header(match.group(1))
        if section_type is not None:
            boundaries.append((match.start(), section_type))

    if not boundaries:
        return []

    boundaries.sort(key=lambda b: b[0])

    # Name / contact block before the first recognised header
    blocks: List[Tuple[Optional[SectionType], str]] = [
        (SectionType.OTHER, body[:boundaries[0][0]])
    ]
    for i, (start, section_type) in enumerate(boundaries):
        end = boundaries[i + 1][0] if i + 1 < len(boundaries) else len(body)
        blocks.append((section_type, body[start:end]))

    return _fold_blocks(blocks)


def extract_sections(latex_content: str) -> ParsedDocument:
    """
    Extract sections from a LaTeX document.

    Returns the preamble (up to and including \\begin{document}), the
    extracted sections, and the postamble (from \\end{document} on).
    """
    latex_content = latex_content or ""

    begin = BEGIN_DOCUMENT_RE.search(latex_content)
    if not begin:
        logger.warning("[PARSER] No \\begin{document} found, treating input as a single OTHER section")
        return ParsedDocument(
            preamble="",
            sections=[ExtractedSection(SectionType.OTHER, latex_content, 0)],
            postamble="",
            fragment=True,
        )

    preamble = latex_content[:begin.end()]
    rest = latex_content[begin.end():]
    end = END_DOCUMENT_RE.search(rest)
    body_end = end.start() if end else len(rest)
    body = rest[:body_end]
    postamble = rest[body_end:]

    sections = _extract_marker_sections(body)
    if sections:
        logger.info(f"[PARSER] Extracted {len(sections)} sections using markers")
        return ParsedDocument(preamble=preamble, sections=sections, postamble=postamble)

    sections = _extract_heuristic_sections(body)
    if sections:
        logger.info(
            f"[PARSER] Extracted {len(sections)} sections using heuristics: "
            f"{', '.join(s.section_type.value for s in sections)}"
        )
        return ParsedDocument(preamble=preamble, sections=sections, postamble=postamble)

    logger.warning(f"[PARSER] No recognizable sections found, treating body as OTHER (preview: {body.strip()[:80]!r})")
    return ParsedDocument(
        preamble=preamble,
        sections=[ExtractedSection(SectionType.OTHER, body.strip(), 0)],
        postamble=postamble,
    )


def assemble_sections(parsed: ParsedDocument) -> str:
    """
    Assemble sections back into a LaTeX document.

    Sections are emitted in order_index order, each wrapped in markers, between
    the untouched preamble and postamble. The caller's section order is
    irrelevant.

    Exception: a fragment (input that had no \\begin{document}) is emitted
    without markers, sections joined by a blank line, so a bare snippet
    comes back exactly as it went in instead of gaining marker comments.
    """
    ordered = sorted(parsed.sections, key=lambda s: s.order_index)

    if parsed.fragment:
        return "\n\n".join(s.content for s in ordered)

    parts = [parsed.preamble, "\n"]
    for section in ordered:
        parts.append(SECTION_MARKER.format(section_type=section.section_type.value))
        parts.append(section.content)
        parts.append(END_MARKER)
    parts.append(parsed.postamble)
    return "".join(parts)


def freeze_replacements(replacements: Optional[Mapping]) -> Mapping[SectionType, str]:
    """Normalise keys to SectionType and return a read-only copy."""
    frozen: Dict[SectionType, str] = {}
    for key, value in (replacements or {}).items():
        frozen[SectionType(key)] = value
    return MappingProxyType(frozen)


def resolve_section_content(
    section_type: SectionType,
    original: str,
    replacements: Mapping[SectionType, str],
    locked: Iterable[SectionType],
) -> str:
    """Locked beats replacement beats original. Every merge goes through here."""
    if section_type in locked:
        return original
    return replacements.get(section_type, original)


def assemble_with_modifications(
    parsed: ParsedDocument,
    modifications: Optional[Mapping],
    locked_sections: Optional[Iterable] = None,
) -> str:
    """
    Assemble with some sections replaced.

    A locked section always keeps its original content, even when a
    replacement is supplied for it.
    """
    replacements = freeze_replacements(modifications)
    locked = frozenset(SectionType(s) for s in (locked_sections or ()))

    sections = [
        replace(
            section,
            content=resolve_section_content(section.section_type, section.content, replacements, locked),
        )
        for section in parsed.sections
    ]
    return assemble_sections(replace(parsed, sections=sections))


def add_markers(latex_content: str) -> str:
    """Rewrite a legacy (unmarked) document in marker form."""
    return assemble_sections(extract_sections(latex_content))


def _strip_marker_lines(text: str) -> str:
    text = MARKER_START_RE.sub("", text)
    return MARKER_END_RE.sub("", text)


def _normalize(text: str) -> str:
    return "".join(_strip_marker_lines(text).split())


def validate_round_trip(latex_content: str) -> RoundTripReport:
    """Extract, reassemble and check nothing but markers and whitespace moved."""
    errors: List[str] = []
    try:
        parsed = extract_sections(latex_content)
        reconstructed = assemble_sections(parsed)
    except Exception as e:
        return RoundTripReport(
            is_valid=False,
            original_length=len(latex_content),
            reconstructed_length=0,
            sections_found=0,
            errors=[f"Exception during validation: {e}"],
        )

    if not reconstructed.startswith(parsed.preamble):
        errors.append("Preamble not preserved")
    if parsed.postamble and not reconstructed.endswith(parsed.postamble):
        errors.append("Postamble not preserved")
    if not parsed.sections and "\\section" in latex_content:
        errors.append("Sections detected but not extracted")
    if _normalize(reconstructed) != _normalize(latex_content):
        errors.append("Section content changed during round-trip")

    return RoundTripReport(
        is_valid=not errors,
        original_length=len(latex_content),
        reconstructed_length=len(reconstructed),
        sections_found=len(parsed.sections),
        errors=errors,
    )
