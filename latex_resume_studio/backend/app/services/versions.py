# File: backend/app/services/versions.py
"""
Resume versions are immutable snapshots linked by parent_version_id.

Editing never touches an existing row: save_edit creates a MANUAL child and
copies the parent's sections when the parent already has them.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.db import models
from app.schemas.version import VersionStatus, VersionType
from app.services.sections import (
    extract_with_inherited_locks,
    get_version_or_raise,
    has_sections,
)

logger = logging.getLogger(__name__)

DEFAULT_RESUME_TEMPLATE = r"""\documentclass[letterpaper,11pt]{article}
\usepackage[empty]{fullpage}
\usepackage{titlesec}
\usepackage[hidelinks]{hyperref}

\titleformat{\section}{\scshape\large}{}{0em}{}[\titlerule]

\begin{document}

\begin{center}
    {\Huge \scshape Your Name} \\
    \small your.email@example.com $|$ (555) 555-5555
\end{center}

\section{Education}
University Name \hfill 2018 -- 2022 \\
B.S. in Computer Science

\section{Experience}
\textbf{Software Engineer} \hfill 2022 -- Present \\
Company Name
\begin{itemize}
    \item Describe what you built and the impact it had
\end{itemize}

\section{Projects}
\textbf{Project Name} $|$ \emph{Python, FastAPI}
\begin{itemize}
    \item Describe the project
\end{itemize}

\section{Technical Skills}
\textbf{Languages}: Python, TypeScript, SQL

\end{document}
"""


def create_base_version(db: Session, initial_content: Optional[str] = None) -> models.ResumeVersion:
    version = models.ResumeVersion(
        parent_version_id=None,
        type=VersionType.BASE.value,
        status=VersionStatus.DRAFT.value,
        latex_content=initial_content or DEFAULT_RESUME_TEMPLATE,
    )
    db.add(version)
    db.commit()
    db.refresh(version)
    logger.info(f"Created base version {version.id}")
    return version


def get_version(db: Session, version_id: int) -> models.ResumeVersion:
    return get_version_or_raise(db, version_id)


def save_edit(db: Session, version_id: int, latex_content: str) -> models.ResumeVersion:
    parent = get_version_or_raise(db, version_id)

    version = models.ResumeVersion(
        parent_version_id=parent.id,
        type=VersionType.MANUAL.value,
        status=VersionStatus.DRAFT.value,
        latex_content=latex_content,
    )
    db.add(version)
    db.commit()
    db.refresh(version)

    # Only snapshot sections when the parent already has them;
    # otherwise extraction stays lazy.
    if has_sections(db, parent.id):
        extract_with_inherited_locks(db, parent.id, version.id)

    logger.info(f"Saved manual edit of version {parent.id} as version {version.id}")
    return version


def list_versions(db: Session, skip: int = 0, limit: int = 100) -> List[models.ResumeVersion]:
    return (
        db.query(models.ResumeVersion)
        .order_by(models.ResumeVersion.created_at.desc(), models.ResumeVersion.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_latest_version(db: Session) -> models.ResumeVersion:
    version = (
        db.query(models.ResumeVersion)
        .order_by(models.ResumeVersion.created_at.desc(), models.ResumeVersion.id.desc())
        .first()
    )
    if not version:
        raise NotFoundError("No resume versions exist yet")
    return version


def create_job_description(db: Session, raw_text: str, title: Optional[str] = None) -> models.JobDescription:
    job_description = models.JobDescription(title=title, raw_text=raw_text)
    db.add(job_description)
    db.commit()
    db.refresh(job_description)
    return job_description


def get_job_description(db: Session, job_description_id: int) -> models.JobDescription:
    job_description = db.query(models.JobDescription).filter(
        models.JobDescription.id == job_description_id
    ).first()
    if not job_description:
        raise NotFoundError(f"Job description {job_description_id} not found")
    return job_description
