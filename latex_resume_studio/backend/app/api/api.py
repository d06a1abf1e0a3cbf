# File: backend/app/api/api.py
from fastapi import APIRouter

from app.api.endpoints import ai_jobs, job_descriptions, versions

api_router = APIRouter(prefix="/api")
api_router.include_router(versions.router, prefix="/versions", tags=["versions"])
api_router.include_router(job_descriptions.router, prefix="/job-descriptions", tags=["job-descriptions"])
api_router.include_router(ai_jobs.router, prefix="/ai", tags=["ai"])
