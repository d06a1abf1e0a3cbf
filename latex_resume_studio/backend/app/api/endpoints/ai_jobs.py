# File: backend/app/api/endpoints/ai_jobs.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Any, List
import logging

from app.api.deps import get_job_runner, http_error
from app.core.errors import StudioError
from app.db.database import get_db
from app.schemas.ai_job import (
    AcceptProposalRequest,
    AcceptProposalResponse,
    JobStatusResponse,
    ProposalResponse,
    RefineProposalRequest,
    RejectProposalResponse,
    StartTailoringRequest,
    StartTailoringResponse,
)
from app.services import ai_jobs as ai_job_service
from app.services.ai_jobs import JobRunner

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/tailor", response_model=StartTailoringResponse)
async def start_tailoring(
    request: StartTailoringRequest,
    db: Session = Depends(get_db),
    runner: JobRunner = Depends(get_job_runner),
) -> Any:
    """Queue a tailoring job and return its id right away. Poll /jobs/{id} for progress."""
    try:
        job = ai_job_service.start_tailoring(db, request)
    except StudioError as e:
        db.rollback()
        raise http_error(e)

    runner.schedule(job.id)
    return StartTailoringResponse(job_id=job.id)


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
def get_job_status(job_id: int, db: Session = Depends(get_db)) -> Any:
    try:
        return ai_job_service.get_job_status(db, job_id)
    except StudioError as e:
        raise http_error(e)


@router.get("/versions/{version_id}/jobs", response_model=List[JobStatusResponse])
def list_jobs_for_version(version_id: int, db: Session = Depends(get_db)) -> Any:
    try:
        return ai_job_service.list_jobs_for_version(db, version_id)
    except StudioError as e:
        raise http_error(e)


@router.get("/jobs/{job_id}/proposal", response_model=ProposalResponse)
def get_proposal(job_id: int, db: Session = Depends(get_db)) -> Any:
    try:
        return ai_job_service.get_proposal(db, job_id)
    except StudioError as e:
        raise http_error(e)


@router.post("/jobs/{job_id}/accept", response_model=AcceptProposalResponse)
def accept_proposal(
    job_id: int,
    request: AcceptProposalRequest,
    db: Session = Depends(get_db)
) -> Any:
    """Accept all or some proposed sections as a new AI_GENERATED version."""
    try:
        version = ai_job_service.accept_proposal(db, job_id, request.accepted_sections)
    except StudioError as e:
        db.rollback()
        raise http_error(e)
    return AcceptProposalResponse(new_version_id=version.id)


@router.post("/jobs/{job_id}/reject", response_model=RejectProposalResponse)
def reject_proposal(job_id: int, db: Session = Depends(get_db)) -> Any:
    try:
        return RejectProposalResponse(success=ai_job_service.reject_proposal(db, job_id))
    except StudioError as e:
        db.rollback()
        raise http_error(e)


@router.post("/jobs/{job_id}/refine", response_model=StartTailoringResponse)
async def refine_proposal(
    job_id: int,
    request: RefineProposalRequest,
    db: Session = Depends(get_db),
    runner: JobRunner = Depends(get_job_runner),
) -> Any:
    """Queue a follow-up job that takes the user's feedback on a proposal into account."""
    try:
        job = ai_job_service.refine_proposal(db, job_id, request.feedback)
    except StudioError as e:
        db.rollback()
        raise http_error(e)

    runner.schedule(job.id)
    return StartTailoringResponse(job_id=job.id)
