# File: backend/app/api/deps.py
from fastapi import HTTPException, Request

from app.core.errors import (
    InvalidJobTransition,
    InvariantViolation,
    NotFoundError,
    SectionLockError,
    StudioError,
)
from app.services.ai_jobs import JobRunner


def get_job_runner(request: Request) -> JobRunner:
    return request.app.state.job_runner


def http_error(e: StudioError) -> HTTPException:
    """Map a service error onto the HTTP status the endpoints return."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvariantViolation, InvalidJobTransition, SectionLockError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))
