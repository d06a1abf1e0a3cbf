# File: backend/app/db/models.py
from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.database import Base

class ResumeVersion(Base):
    __tablename__ = "resume_versions"

    id = Column(Integer, primary_key=True, index=True)
    parent_version_id = Column(Integer, ForeignKey("resume_versions.id"), nullable=True)
    type = Column(String, nullable=False, default="BASE")  # "BASE", "MANUAL", "AI_GENERATED"
    status = Column(String, nullable=False, default="DRAFT")  # "DRAFT", "COMPILED", "ERROR", "ACTIVE"
    latex_content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sections = relationship(
        "ResumeSection",
        back_populates="version",
        order_by="ResumeSection.order_index",
        cascade="all, delete-orphan",
    )

class ResumeSection(Base):
    __tablename__ = "resume_sections"
    __table_args__ = (
        UniqueConstraint("version_id", "section_type", name="uq_section_version_type"),
        UniqueConstraint("version_id", "order_index", name="uq_section_version_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    version_id = Column(Integer, ForeignKey("resume_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    section_type = Column(String, nullable=False)  # SectionType value
    content = Column(Text, nullable=False)
    order_index = Column(Integer, nullable=False)
    is_locked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    version = relationship("ResumeVersion", back_populates="sections")

class JobDescription(Base):
    __tablename__ = "job_descriptions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=True)
    raw_text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class AIJob(Base):
    __tablename__ = "ai_jobs"

    id = Column(Integer, primary_key=True, index=True)
    base_version_id = Column(Integer, ForeignKey("resume_versions.id"), nullable=False, index=True)
    job_description_id = Column(Integer, ForeignKey("job_descriptions.id"), nullable=True)
    parent_job_id = Column(Integer, ForeignKey("ai_jobs.id"), nullable=True)  # refinement lineage
    new_version_id = Column(Integer, ForeignKey("resume_versions.id"), nullable=True)
    mode = Column(String, nullable=False, default="BALANCED")  # "MINIMAL", "BALANCED", "AGGRESSIVE"
    status = Column(String, nullable=False, default="QUEUED")  # "QUEUED", "RUNNING", "COMPLETED", "FAILED"
    user_instructions = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    base_version = relationship("ResumeVersion", foreign_keys=[base_version_id])
    job_description = relationship("JobDescription")
    proposed_version = relationship(
        "ProposedVersion", back_populates="ai_job", uselist=False, cascade="all, delete-orphan"
    )
    section_proposals = relationship(
        "SectionProposalRecord",
        back_populates="ai_job",
        order_by="SectionProposalRecord.order_index",
        cascade="all, delete-orphan",
    )

class ProposedVersion(Base):
    __tablename__ = "proposed_versions"

    id = Column(Integer, primary_key=True, index=True)
    ai_job_id = Column(Integer, ForeignKey("ai_jobs.id", ondelete="CASCADE"), unique=True, nullable=False)
    proposed_latex_content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    ai_job = relationship("AIJob", back_populates="proposed_version")

class SectionProposalRecord(Base):
    __tablename__ = "section_proposals"
    __table_args__ = (
        UniqueConstraint("ai_job_id", "section_type", name="uq_proposal_job_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    ai_job_id = Column(Integer, ForeignKey("ai_jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    section_type = Column(String, nullable=False)
    order_index = Column(Integer, nullable=False)
    before = Column(Text, nullable=False)
    after = Column(Text, nullable=False)
    change_type = Column(String, nullable=False)  # "unchanged", "modified"

    ai_job = relationship("AIJob", back_populates="section_proposals")
