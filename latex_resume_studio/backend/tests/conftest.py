"""
Shared fixtures: in-memory SQLite sessions, a scripted generation gateway
and sample résumés.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before app.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["GENERATION_DELAY_SECONDS"] = "0"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import models
from app.db.database import Base
from app.llm.gateway import GenerationError
from app.schemas.sections import SectionType
from app.schemas.version import VersionStatus, VersionType


# ── Sample documents ─────────────────────────────────────────────────────────

SIMPLE_RESUME = r"""\documentclass{article}
\begin{document}
\section{Education}
BS Computer Science, State University \hfill 2020
\section{Experience}
\textbf{Engineer} at Acme \\
\begin{itemize}
  \item Built \emph{things}
\end{itemize}
\end{document}
"""

FULL_RESUME = r"""\documentclass[letterpaper,11pt]{article}
\usepackage{titlesec}
\titleformat{\section}{\scshape\large}{}{0em}{}[\titlerule]

\begin{document}

\begin{center}
  {\Huge \scshape Jane Doe} \\
  jane@example.com $|$ (555) 555-5555
\end{center}

\section{Work Experience}
\textbf{Backend Engineer} \hfill 2021 -- Present \\
\textit{Acme Corp}
\begin{itemize}
  \item Built a billing pipeline in Python
  \item Cut p99 latency by 40\%
\end{itemize}

\section{Education}
\textbf{State University} \hfill 2017 -- 2021 \\
B.S. in Computer Science

\section{Projects}
\textbf{resume-tools} $|$ \emph{Python, FastAPI}
\begin{itemize}
  \item LaTeX résumé linter
\end{itemize}

\section{Technical Skills}
\textbf{Languages}: Python, Go, SQL

\section{Honors \& Awards}
Dean's List, 2019

\end{document}
"""

FREE_TEXT_RESUME = r"""\documentclass{article}
\begin{document}
Jane Doe. Backend engineer with five years of Python experience.
\end{document}
"""


@pytest.fixture
def simple_resume():
    return SIMPLE_RESUME


@pytest.fixture
def full_resume():
    return FULL_RESUME


@pytest.fixture
def free_text_resume():
    return FREE_TEXT_RESUME


# ── Database ─────────────────────────────────────────────────────────────────

@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def make_version(db):
    def _make(latex_content: str, status: VersionStatus = VersionStatus.DRAFT) -> models.ResumeVersion:
        version = models.ResumeVersion(
            type=VersionType.BASE.value,
            status=status.value,
            latex_content=latex_content,
        )
        db.add(version)
        db.commit()
        db.refresh(version)
        return version
    return _make


# ── Generation gateway ───────────────────────────────────────────────────────

class FakeGateway:
    """
    Scripted gateway keyed by section type.

    A scripted value may be a string (returned), an exception instance
    (raised) or an async callable (awaited). Unscripted types raise
    GenerationError.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        section_type = next(
            t for t in SectionType if f"Section type: {t.value}." in system_prompt
        )
        self.calls.append((section_type, user_prompt))

        response = self.responses.get(section_type)
        if response is None:
            raise GenerationError(f"no scripted response for {section_type.value}")
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return await response()
        return response

    @property
    def called_types(self):
        return [t for t, _ in self.calls]


@pytest.fixture
def fake_gateway():
    return FakeGateway
