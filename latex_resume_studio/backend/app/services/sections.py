"""
Section store: per-version snapshots of extracted sections.

Sections belong to exactly one ResumeVersion. They are written once (on
first extraction or when a version is created from a parent) and only the
lock flag changes afterwards, and only while the version is DRAFT/ACTIVE.
A new version copies its parent's sections; nothing is edited in place.

Legacy versions get their sections lazily: extraction happens the first
time a job, a child version or the sections view needs them.
"""

import logging
from typing import Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.errors import InvariantViolation, NotFoundError, SectionLockError
from app.db import models
from app.schemas.sections import SectionType
from app.schemas.version import VersionStatus
from app.services.latex_parser import (
    ExtractedSection,
    ParsedDocument,
    assemble_sections,
    extract_sections,
    freeze_replacements,
    resolve_section_content,
)

logger = logging.getLogger(__name__)

LOCK_EDITABLE_STATUSES = {VersionStatus.DRAFT.value, VersionStatus.ACTIVE.value}


def get_version_or_raise(db: Session, version_id: int) -> models.ResumeVersion:
    version = db.query(models.ResumeVersion).filter(models.ResumeVersion.id == version_id).first()
    if not version:
        raise NotFoundError(f"Version {version_id} not found")
    return version


def check_section_invariants(sections: Sequence) -> None:
    """Section types unique and order indices exactly 0..n-1."""
    types = [SectionType(s.section_type) for s in sections]
    if len(types) != len(set(types)):
        raise InvariantViolation("Duplicate section types not allowed per version")

    indices = sorted(s.order_index for s in sections)
    if indices != list(range(len(sections))):
        raise InvariantViolation(f"Section order indices must be 0..{len(sections) - 1}, got {indices}")


def to_extracted(row: models.ResumeSection) -> ExtractedSection:
    return ExtractedSection(
        section_type=SectionType(row.section_type),
        content=row.content,
        order_index=row.order_index,
        is_locked=row.is_locked,
    )


def get_sections_for_version(db: Session, version_id: int) -> List[models.ResumeSection]:
    return (
        db.query(models.ResumeSection)
        .filter(models.ResumeSection.version_id == version_id)
        .order_by(models.ResumeSection.order_index.asc())
        .all()
    )


def has_sections(db: Session, version_id: int) -> bool:
    return db.query(models.ResumeSection.id).filter(
        models.ResumeSection.version_id == version_id
    ).first() is not None


def get_unlocked_sections(db: Session, version_id: int) -> List[models.ResumeSection]:
    """Sections the assistant is allowed to rewrite."""
    return (
        db.query(models.ResumeSection)
        .filter(
            models.ResumeSection.version_id == version_id,
            models.ResumeSection.is_locked == False,  # noqa: E712
        )
        .order_by(models.ResumeSection.order_index.asc())
        .all()
    )


def create_sections_for_version(
    db: Session,
    version_id: int,
    sections: Sequence,
    commit: bool = True,
) -> List[models.ResumeSection]:
    """
    Store a complete section set for a version that has none yet.

    With commit=False the rows are only flushed, so the caller can make them
    part of a larger transaction.
    """
    check_section_invariants(sections)
    if has_sections(db, version_id):
        raise InvariantViolation(f"Version {version_id} already has sections")

    rows = [
        models.ResumeSection(
            version_id=version_id,
            section_type=SectionType(s.section_type).value,
            content=s.content,
            order_index=s.order_index,
            is_locked=bool(s.is_locked),
        )
        for s in sections
    ]
    db.add_all(rows)
    if commit:
        db.commit()
    else:
        db.flush()
    return get_sections_for_version(db, version_id)


def extract_and_store_sections(db: Session, version_id: int) -> List[models.ResumeSection]:
    """
    Return the version's sections, extracting them from its LaTeX first if
    it has none. Idempotent.
    """
    existing = get_sections_for_version(db, version_id)
    if existing:
        return existing

    version = get_version_or_raise(db, version_id)
    parsed = extract_sections(version.latex_content)
    logger.info(f"[SECTIONS] Lazily extracted {len(parsed.sections)} sections for version {version_id}")
    return create_sections_for_version(db, version_id, parsed.sections)


def copy_sections_from_parent(
    db: Session,
    parent_version_id: int,
    new_version_id: int,
    modifications: Optional[Mapping] = None,
) -> List[models.ResumeSection]:
    """
    Copy the parent's sections into a new version.

    Lock state is preserved, and a modification only applies to a section
    that is unlocked in the parent.
    """
    parent_sections = extract_and_store_sections(db, parent_version_id)
    if not parent_sections:
        return []

    replacements = freeze_replacements(modifications)
    locked = frozenset(SectionType(s.section_type) for s in parent_sections if s.is_locked)

    copies = []
    for parent in parent_sections:
        section_type = SectionType(parent.section_type)
        copies.append(ExtractedSection(
            section_type=section_type,
            content=resolve_section_content(section_type, parent.content, replacements, locked),
            order_index=parent.order_index,
            is_locked=parent.is_locked,
        ))
    return create_sections_for_version(db, new_version_id, copies)


def extract_with_inherited_locks(
    db: Session,
    parent_version_id: int,
    new_version_id: int,
    commit: bool = True,
) -> List[models.ResumeSection]:
    """Extract a new version's sections from its own LaTeX, keeping the parent's locks by type."""
    locked = frozenset(
        SectionType(s.section_type)
        for s in get_sections_for_version(db, parent_version_id)
        if s.is_locked
    )
    version = get_version_or_raise(db, new_version_id)
    parsed = extract_sections(version.latex_content)
    for section in parsed.sections:
        section.is_locked = section.section_type in locked
    return create_sections_for_version(db, new_version_id, parsed.sections, commit=commit)


def update_section_lock(db: Session, section_id: int, is_locked: bool) -> models.ResumeSection:
    section = db.query(models.ResumeSection).filter(models.ResumeSection.id == section_id).first()
    if not section:
        raise NotFoundError(f"Section {section_id} not found")

    if section.version.status not in LOCK_EDITABLE_STATUSES:
        raise SectionLockError("Can only modify section locks on DRAFT/ACTIVE versions")

    section.is_locked = is_locked
    db.commit()
    db.refresh(section)
    return section


def apply_lock_selection(
    db: Session,
    version_id: int,
    locked_types: Iterable[SectionType],
) -> List[models.ResumeSection]:
    """Lock exactly the given section types of a version, unlock the rest."""
    version = get_version_or_raise(db, version_id)
    sections = extract_and_store_sections(db, version_id)
    wanted = frozenset(SectionType(t) for t in locked_types)

    changed = [s for s in sections if (SectionType(s.section_type) in wanted) != s.is_locked]
    if changed and version.status not in LOCK_EDITABLE_STATUSES:
        raise SectionLockError("Can only modify section locks on DRAFT/ACTIVE versions")

    for section in changed:
        section.is_locked = not section.is_locked
    db.commit()
    return get_sections_for_version(db, version_id)


def parsed_document_for_version(db: Session, version_id: int) -> ParsedDocument:
    """
    Stored sections of a version framed by the preamble/postamble of its
    LaTeX source.
    """
    version = get_version_or_raise(db, version_id)
    sections = extract_and_store_sections(db, version_id)
    frame = extract_sections(version.latex_content)
    return ParsedDocument(
        preamble=frame.preamble,
        sections=[to_extracted(s) for s in sections],
        postamble=frame.postamble,
        fragment=frame.fragment,
    )


def assemble_latex_from_sections(db: Session, version_id: int) -> str:
    version = get_version_or_raise(db, version_id)
    if not has_sections(db, version_id):
        return version.latex_content
    return assemble_sections(parsed_document_for_version(db, version_id))
