# File: backend/app/schemas/version.py
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class VersionType(str, Enum):
    BASE = "BASE"
    MANUAL = "MANUAL"
    AI_GENERATED = "AI_GENERATED"


class VersionStatus(str, Enum):
    DRAFT = "DRAFT"
    COMPILED = "COMPILED"
    ERROR = "ERROR"
    ACTIVE = "ACTIVE"


class CreateBaseVersionRequest(BaseModel):
    latex_content: Optional[str] = Field(default=None, max_length=500000)


class SaveEditRequest(BaseModel):
    # 500KB ceiling keeps pathological uploads out of the parser
    latex_content: str = Field(min_length=10, max_length=500000)


class SaveEditResponse(BaseModel):
    new_version_id: int


class ResumeVersionResponse(BaseModel):
    id: int
    parent_version_id: Optional[int] = None
    type: VersionType
    status: VersionStatus
    latex_content: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VersionListItem(BaseModel):
    id: int
    parent_version_id: Optional[int] = None
    type: VersionType
    status: VersionStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssembledLatexResponse(BaseModel):
    version_id: int
    latex_content: str


class VersionDiffResponse(BaseModel):
    added: List[str]
    removed: List[str]
    unchanged_count: int
    unified_diff: str
