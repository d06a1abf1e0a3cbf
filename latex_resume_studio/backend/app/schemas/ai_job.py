# File: backend/app/schemas/ai_job.py
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.schemas.sections import SectionType


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class JobMode(str, Enum):
    MINIMAL = "MINIMAL"
    BALANCED = "BALANCED"
    AGGRESSIVE = "AGGRESSIVE"


class ChangeType(str, Enum):
    UNCHANGED = "unchanged"
    MODIFIED = "modified"


class StartTailoringRequest(BaseModel):
    base_version_id: int
    mode: JobMode = JobMode.BALANCED
    job_description_id: Optional[int] = None
    user_instructions: Optional[str] = Field(default=None, max_length=5000)
    locked_sections: Optional[List[SectionType]] = None


class StartTailoringResponse(BaseModel):
    job_id: int


class JobStatusResponse(BaseModel):
    job_id: int
    status: JobStatus
    mode: JobMode
    base_version_id: int
    parent_job_id: Optional[int] = None
    new_version_id: Optional[int] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SectionProposal(BaseModel):
    section_type: SectionType
    before: str
    after: str
    change_type: ChangeType


class ProposalResponse(BaseModel):
    job_id: int
    proposed_latex_content: str
    sections: List[SectionProposal]
    added_lines: int
    removed_lines: int


class AcceptProposalRequest(BaseModel):
    # None accepts every section; an empty list accepts none
    accepted_sections: Optional[List[SectionType]] = None


class AcceptProposalResponse(BaseModel):
    new_version_id: int


class RejectProposalResponse(BaseModel):
    success: bool


class RefineProposalRequest(BaseModel):
    feedback: str = Field(min_length=1, max_length=5000)


class JobDescriptionCreate(BaseModel):
    title: Optional[str] = None
    raw_text: str = Field(min_length=1, max_length=50000)


class JobDescriptionResponse(BaseModel):
    id: int
    title: Optional[str] = None
    raw_text: str

    class Config:
        from_attributes = True
