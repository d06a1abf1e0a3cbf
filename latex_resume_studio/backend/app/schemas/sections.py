# File: backend/app/schemas/sections.py
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class SectionType(str, Enum):
    EDUCATION = "EDUCATION"
    EXPERIENCE = "EXPERIENCE"
    PROJECTS = "PROJECTS"
    SKILLS = "SKILLS"
    ACHIEVEMENTS = "ACHIEVEMENTS"
    OTHER = "OTHER"


class SectionCreate(BaseModel):
    section_type: SectionType
    content: str
    order_index: int = Field(ge=0)
    is_locked: bool = False


class SectionResponse(BaseModel):
    id: int
    version_id: int
    section_type: SectionType
    content: str
    order_index: int
    is_locked: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SectionLockRequest(BaseModel):
    is_locked: bool


class SectionListResponse(BaseModel):
    version_id: int
    sections: List[SectionResponse]
