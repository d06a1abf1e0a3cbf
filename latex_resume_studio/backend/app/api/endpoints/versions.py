# File: backend/app/api/endpoints/versions.py
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import Any, List
import logging

from app.api.deps import http_error
from app.core.errors import StudioError
from app.db.database import get_db
from app.schemas.sections import SectionListResponse, SectionLockRequest, SectionResponse
from app.schemas.version import (
    AssembledLatexResponse,
    CreateBaseVersionRequest,
    ResumeVersionResponse,
    SaveEditRequest,
    SaveEditResponse,
    VersionDiffResponse,
    VersionListItem,
)
from app.services import sections as section_store
from app.services import versions as version_service
from app.services.diff import generate_diff, generate_unified_diff

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/", response_model=ResumeVersionResponse)
def create_base_version(
    request: CreateBaseVersionRequest,
    db: Session = Depends(get_db)
) -> Any:
    """Create a BASE version, from the given LaTeX or the default template."""
    return version_service.create_base_version(db, request.latex_content)


@router.get("/", response_model=List[VersionListItem])
def list_versions(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
) -> Any:
    return version_service.list_versions(db, skip=skip, limit=limit)


@router.get("/latest", response_model=ResumeVersionResponse)
def get_latest_version(db: Session = Depends(get_db)) -> Any:
    try:
        return version_service.get_latest_version(db)
    except StudioError as e:
        raise http_error(e)


@router.get("/diff", response_model=VersionDiffResponse)
def get_version_diff(
    base_id: int,
    target_id: int,
    db: Session = Depends(get_db)
) -> Any:
    """Line diff between two versions' LaTeX."""
    try:
        base = version_service.get_version(db, base_id)
        target = version_service.get_version(db, target_id)
    except StudioError as e:
        raise http_error(e)

    diff = generate_diff(base.latex_content, target.latex_content)
    return VersionDiffResponse(
        added=diff.added,
        removed=diff.removed,
        unchanged_count=len(diff.unchanged),
        unified_diff=generate_unified_diff(
            base.latex_content, target.latex_content, f"v{base.id}", f"v{target.id}"
        ),
    )


@router.get("/{version_id}", response_model=ResumeVersionResponse)
def get_version(version_id: int, db: Session = Depends(get_db)) -> Any:
    try:
        return version_service.get_version(db, version_id)
    except StudioError as e:
        raise http_error(e)


@router.put("/{version_id}", response_model=SaveEditResponse)
def save_edit(
    version_id: int,
    request: SaveEditRequest,
    db: Session = Depends(get_db)
) -> Any:
    """Save an edit as a new MANUAL version. The edited version is left untouched."""
    try:
        version = version_service.save_edit(db, version_id, request.latex_content)
    except StudioError as e:
        db.rollback()
        raise http_error(e)
    return SaveEditResponse(new_version_id=version.id)


@router.get("/{version_id}/sections", response_model=SectionListResponse)
def get_sections(version_id: int, db: Session = Depends(get_db)) -> Any:
    """Sections of a version, extracted on first request."""
    try:
        sections = section_store.extract_and_store_sections(db, version_id)
    except StudioError as e:
        db.rollback()
        raise http_error(e)
    return SectionListResponse(
        version_id=version_id,
        sections=[SectionResponse.model_validate(s) for s in sections],
    )


@router.patch("/sections/{section_id}/lock", response_model=SectionResponse)
def update_section_lock(
    section_id: int,
    request: SectionLockRequest,
    db: Session = Depends(get_db)
) -> Any:
    try:
        return section_store.update_section_lock(db, section_id, request.is_locked)
    except StudioError as e:
        raise http_error(e)


@router.get("/{version_id}/assembled", response_model=AssembledLatexResponse)
def get_assembled_latex(version_id: int, db: Session = Depends(get_db)) -> Any:
    """The version's LaTeX rebuilt from its stored sections, with section markers."""
    try:
        latex_content = section_store.assemble_latex_from_sections(db, version_id)
    except StudioError as e:
        raise http_error(e)
    return AssembledLatexResponse(version_id=version_id, latex_content=latex_content)


@router.get("/{version_id}/download/latex")
def download_latex(version_id: int, db: Session = Depends(get_db)) -> Any:
    try:
        version = version_service.get_version(db, version_id)
    except StudioError as e:
        raise http_error(e)
    return Response(
        content=version.latex_content,
        media_type="application/x-tex",
        headers={"Content-Disposition": f'attachment; filename="resume-v{version.id}.tex"'},
    )
