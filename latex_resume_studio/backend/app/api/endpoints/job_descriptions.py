# File: backend/app/api/endpoints/job_descriptions.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Any
import logging

from app.api.deps import http_error
from app.core.errors import StudioError
from app.db.database import get_db
from app.schemas.ai_job import JobDescriptionCreate, JobDescriptionResponse
from app.services import versions as version_service

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/", response_model=JobDescriptionResponse)
def create_job_description(
    job_desc: JobDescriptionCreate,
    db: Session = Depends(get_db)
) -> Any:
    """Store a job description so tailoring jobs can reference it."""
    jd = version_service.create_job_description(db, job_desc.raw_text, job_desc.title)
    logger.info(f"Created job description {jd.id}")
    return jd

@router.get("/{jd_id}", response_model=JobDescriptionResponse)
def read_job_description(
    jd_id: int,
    db: Session = Depends(get_db)
) -> Any:
    """Get a specific job description by ID."""
    try:
        return version_service.get_job_description(db, jd_id)
    except StudioError as e:
        raise http_error(e)
