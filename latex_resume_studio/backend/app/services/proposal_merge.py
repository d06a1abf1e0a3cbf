# File: backend/app/services/proposal_merge.py
"""
Selective acceptance of a stored proposal.

The user picks which section types to accept; every other section keeps its
'before' text. No generation happens here.
"""
import logging
from typing import Dict, Iterable, Optional, Sequence

from app.schemas.sections import SectionType
from app.services.latex_parser import ParsedDocument, assemble_with_modifications

logger = logging.getLogger(__name__)


def select_replacements(proposals: Sequence, accepted: Iterable) -> Dict[SectionType, str]:
    """'after' for accepted types, 'before' for the rest."""
    accepted_types = frozenset(SectionType(t) for t in accepted)
    replacements: Dict[SectionType, str] = {}
    for proposal in proposals:
        section_type = SectionType(proposal.section_type)
        replacements[section_type] = proposal.after if section_type in accepted_types else proposal.before
    return replacements


def resolve_accepted(proposals: Sequence, accepted_sections: Optional[Iterable]) -> frozenset:
    """None means accept everything in the proposal."""
    if accepted_sections is None:
        return frozenset(SectionType(p.section_type) for p in proposals)
    return frozenset(SectionType(t) for t in accepted_sections)


def merge_proposals(parsed: ParsedDocument, proposals: Sequence, accepted: Iterable) -> str:
    # The accept/reject choice already covers the lock policy for this merge
    replacements = select_replacements(proposals, accepted)
    merged = assemble_with_modifications(parsed, replacements, locked_sections=())
    logger.info(
        f"[MERGE] Merged {len(proposals)} proposals, "
        f"{sum(1 for p in proposals if replacements[SectionType(p.section_type)] != p.before)} changed sections kept"
    )
    return merged
