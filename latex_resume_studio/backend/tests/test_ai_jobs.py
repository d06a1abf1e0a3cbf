"""
Revision job orchestration, proposal merge and acceptance.

The gateway is scripted per section type (see conftest.FakeGateway); async
code is driven with asyncio.run.

Policy under test: a GenerationError or timeout from one generation call
leaves that section unchanged and the job continues; any other exception
fails the whole job.

Run: pytest backend/tests/test_ai_jobs.py -v
"""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.core.errors import InvalidJobTransition, InvariantViolation, NotFoundError, ProposalStateError
from app.db import models
from app.llm.gateway import GenerationQuotaError, GenerationTimeout
from app.schemas.ai_job import ChangeType, JobMode, JobStatus, SectionProposal, StartTailoringRequest
from app.schemas.sections import SectionType
from app.schemas.version import VersionType
from app.services import ai_jobs
from app.services import sections as section_store
from app.services.latex_parser import ExtractedSection, ParsedDocument, extract_sections
from app.services.proposal_merge import merge_proposals, resolve_accepted
from app.services.versions import create_base_version, create_job_description

EDUCATION_REWRITE = r"""\section{Education}
B.S. Computer Science, State University \hfill 2020"""

EXPERIENCE_REWRITE = r"""\section{Experience}
\textbf{Senior Engineer} at Acme \\
\begin{itemize}
  \item Built \emph{scalable payment services} in Python
\end{itemize}"""

BROKEN_EXPERIENCE = r"""\section{Experience}
\textbf{Senior Engineer at Acme \\
\begin{itemize}
  \item Built \emph{things}
\end{itemize}"""


def _run(db, job_id, gateway, **kwargs):
    kwargs.setdefault("delay_seconds", 0)
    kwargs.setdefault("timeout_seconds", 5)
    return asyncio.run(ai_jobs.execute_ai_job(db, job_id, gateway, **kwargs))


def _proposals_by_type(job):
    return {SectionType(p.section_type): p for p in job.section_proposals}


@pytest.fixture
def base_version(db, simple_resume):
    return create_base_version(db, simple_resume)


@pytest.fixture
def start_job(db):
    def _start(version_id, **kwargs):
        return ai_jobs.start_tailoring(db, StartTailoringRequest(base_version_id=version_id, **kwargs))
    return _start


# ── State machine ─────────────────────────────────────────────────────────────

class TestTransitions:

    def test_new_job_is_queued(self, base_version, start_job):
        job = start_job(base_version.id)
        assert job.status == JobStatus.QUEUED.value
        assert job.mode == JobMode.BALANCED.value

    def test_forward_only(self, db, base_version, start_job):
        job = start_job(base_version.id)
        ai_jobs.transition_job(db, job, JobStatus.RUNNING)
        ai_jobs.transition_job(db, job, JobStatus.COMPLETED)

        for target in (JobStatus.QUEUED, JobStatus.RUNNING, JobStatus.FAILED):
            with pytest.raises(InvalidJobTransition):
                ai_jobs.transition_job(db, job, target)

    def test_failed_is_terminal(self, db, base_version, start_job):
        job = start_job(base_version.id)
        ai_jobs.transition_job(db, job, JobStatus.RUNNING)
        ai_jobs.transition_job(db, job, JobStatus.FAILED, error_message="boom")

        assert job.error_message == "boom"
        with pytest.raises(InvalidJobTransition):
            ai_jobs.transition_job(db, job, JobStatus.RUNNING)

    def test_completed_job_cannot_run_again(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id)
        gateway = fake_gateway({SectionType.EXPERIENCE: EXPERIENCE_REWRITE})
        _run(db, job.id, gateway)

        with pytest.raises(InvalidJobTransition):
            _run(db, job.id, gateway)

    def test_start_with_missing_version(self, start_job):
        with pytest.raises(NotFoundError):
            start_job(999)

    def test_start_with_missing_job_description(self, base_version, start_job):
        with pytest.raises(NotFoundError):
            start_job(base_version.id, job_description_id=999)


# ── Per-section pipeline ──────────────────────────────────────────────────────

class TestExecution:

    def test_scenario_b_rejected_candidate_is_non_fatal(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id, locked_sections=[SectionType.EDUCATION])
        gateway = fake_gateway({SectionType.EXPERIENCE: BROKEN_EXPERIENCE})

        job = _run(db, job.id, gateway)

        assert job.status == JobStatus.COMPLETED.value
        proposals = _proposals_by_type(job)
        experience = proposals[SectionType.EXPERIENCE]
        assert experience.change_type == ChangeType.UNCHANGED.value
        assert experience.after == experience.before
        assert proposals[SectionType.EDUCATION].change_type == ChangeType.UNCHANGED.value

    def test_locked_sections_never_sent_or_changed(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id, locked_sections=[SectionType.EDUCATION])
        gateway = fake_gateway({
            SectionType.EDUCATION: EDUCATION_REWRITE,
            SectionType.EXPERIENCE: EXPERIENCE_REWRITE,
        })

        job = _run(db, job.id, gateway)

        assert gateway.called_types == [SectionType.EXPERIENCE]
        proposals = _proposals_by_type(job)
        education = proposals[SectionType.EDUCATION]
        assert education.after == education.before
        assert education.change_type == ChangeType.UNCHANGED.value
        assert proposals[SectionType.EXPERIENCE].change_type == ChangeType.MODIFIED.value
        assert proposals[SectionType.EXPERIENCE].after == EXPERIENCE_REWRITE

        proposed = job.proposed_version.proposed_latex_content
        assert education.before in proposed
        assert EDUCATION_REWRITE not in proposed
        assert "scalable payment services" in proposed

    def test_proposals_follow_section_order(self, db, full_resume, start_job, fake_gateway):
        version = create_base_version(db, full_resume)
        job = start_job(version.id)
        job = _run(db, job.id, fake_gateway())

        assert [SectionType(p.section_type) for p in job.section_proposals] == [
            SectionType.OTHER,
            SectionType.EXPERIENCE,
            SectionType.EDUCATION,
            SectionType.PROJECTS,
            SectionType.SKILLS,
            SectionType.ACHIEVEMENTS,
        ]

    def test_scenario_c_single_other_section(self, db, free_text_resume, start_job, fake_gateway):
        version = create_base_version(db, free_text_resume)
        rewrite = "Jane Doe. Backend engineer with five years of Python and FastAPI experience."
        job = start_job(version.id)

        job = _run(db, job.id, fake_gateway({SectionType.OTHER: rewrite}))

        assert job.status == JobStatus.COMPLETED.value
        assert len(job.section_proposals) == 1
        proposal = job.section_proposals[0]
        assert proposal.section_type == SectionType.OTHER.value
        assert proposal.change_type == ChangeType.MODIFIED.value
        assert rewrite in job.proposed_version.proposed_latex_content

    def test_code_fences_are_stripped_before_validation(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id)
        fenced = "```latex\n" + EXPERIENCE_REWRITE + "\n```"

        job = _run(db, job.id, fake_gateway({SectionType.EXPERIENCE: fenced}))

        assert _proposals_by_type(job)[SectionType.EXPERIENCE].after == EXPERIENCE_REWRITE

    def test_identical_candidate_is_unchanged(self, db, base_version, start_job, fake_gateway):
        original = section_store.extract_and_store_sections(db, base_version.id)[1].content
        job = start_job(base_version.id)

        job = _run(db, job.id, fake_gateway({SectionType.EXPERIENCE: original}))

        assert _proposals_by_type(job)[SectionType.EXPERIENCE].change_type == ChangeType.UNCHANGED.value

    def test_job_description_and_instructions_reach_prompt(self, db, base_version, start_job, fake_gateway):
        jd = create_job_description(db, "Hiring a Go engineer for payments", title="Payments")
        job = start_job(base_version.id, job_description_id=jd.id, user_instructions="Mention Go")
        gateway = fake_gateway({SectionType.EXPERIENCE: EXPERIENCE_REWRITE})

        _run(db, job.id, gateway)

        prompt = dict(gateway.calls)[SectionType.EXPERIENCE]
        assert "Hiring a Go engineer for payments" in prompt
        assert "Mention Go" in prompt


class TestGenerationFailurePolicy:

    def test_generation_error_is_section_local(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id)
        gateway = fake_gateway({
            SectionType.EDUCATION: GenerationQuotaError("rate limited"),
            SectionType.EXPERIENCE: EXPERIENCE_REWRITE,
        })

        job = _run(db, job.id, gateway)

        assert job.status == JobStatus.COMPLETED.value
        proposals = _proposals_by_type(job)
        assert proposals[SectionType.EDUCATION].change_type == ChangeType.UNCHANGED.value
        assert proposals[SectionType.EXPERIENCE].change_type == ChangeType.MODIFIED.value

    def test_gateway_timeout_error_is_section_local(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id)
        gateway = fake_gateway({
            SectionType.EDUCATION: EDUCATION_REWRITE,
            SectionType.EXPERIENCE: GenerationTimeout("timed out"),
        })

        job = _run(db, job.id, gateway)

        assert job.status == JobStatus.COMPLETED.value
        assert _proposals_by_type(job)[SectionType.EXPERIENCE].change_type == ChangeType.UNCHANGED.value

    def test_slow_call_hits_timeout_and_job_continues(self, db, base_version, start_job, fake_gateway):
        async def slow():
            await asyncio.sleep(5)
            return EXPERIENCE_REWRITE

        job = start_job(base_version.id)
        gateway = fake_gateway({
            SectionType.EDUCATION: EDUCATION_REWRITE,
            SectionType.EXPERIENCE: slow,
        })

        job = _run(db, job.id, gateway, timeout_seconds=0.05)

        assert job.status == JobStatus.COMPLETED.value
        proposals = _proposals_by_type(job)
        assert proposals[SectionType.EDUCATION].change_type == ChangeType.MODIFIED.value
        assert proposals[SectionType.EXPERIENCE].change_type == ChangeType.UNCHANGED.value

    def test_unexpected_exception_fails_job(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id)
        gateway = fake_gateway({
            SectionType.EDUCATION: EDUCATION_REWRITE,
            SectionType.EXPERIENCE: RuntimeError("provider exploded"),
        })

        job = _run(db, job.id, gateway)

        assert job.status == JobStatus.FAILED.value
        assert job.error_message == "provider exploded"
        assert job.proposed_version is None
        assert db.query(models.SectionProposalRecord).count() == 0

    def test_exception_without_message_gets_fallback(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id)
        job = _run(db, job.id, fake_gateway({SectionType.EDUCATION: RuntimeError()}))

        assert job.status == JobStatus.FAILED.value
        assert job.error_message == "Unknown error"

    def test_all_sections_locked_fails(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id, locked_sections=[SectionType.EDUCATION, SectionType.EXPERIENCE])
        gateway = fake_gateway({SectionType.EXPERIENCE: EXPERIENCE_REWRITE})

        job = _run(db, job.id, gateway)

        assert job.status == JobStatus.FAILED.value
        assert "locked" in job.error_message
        assert gateway.calls == []

    def test_missing_gateway_fails(self, db, base_version, start_job):
        job = start_job(base_version.id)
        job = _run(db, job.id, None)

        assert job.status == JobStatus.FAILED.value
        assert "provider" in job.error_message


class TestThrottle:

    def test_delay_only_between_generation_calls(self, db, full_resume, start_job, fake_gateway, monkeypatch):
        version = create_base_version(db, full_resume)
        job = start_job(version.id, locked_sections=[SectionType.OTHER, SectionType.PROJECTS])

        sleeps = []
        real_sleep = asyncio.sleep

        async def recording_sleep(seconds, *args, **kwargs):
            sleeps.append(seconds)
            await real_sleep(0)

        monkeypatch.setattr(ai_jobs.asyncio, "sleep", recording_sleep)
        gateway = fake_gateway()
        _run(db, job.id, gateway, delay_seconds=1.5, timeout_seconds=0)

        # 4 unlocked sections -> 4 calls -> 3 pauses
        assert len(gateway.calls) == 4
        assert sleeps == [1.5, 1.5, 1.5]

    def test_zero_delay_never_sleeps(self, db, base_version, start_job, fake_gateway, monkeypatch):
        sleeps = []

        async def recording_sleep(seconds, *args, **kwargs):
            sleeps.append(seconds)

        job = start_job(base_version.id)
        monkeypatch.setattr(ai_jobs.asyncio, "sleep", recording_sleep)
        _run(db, job.id, fake_gateway(), delay_seconds=0, timeout_seconds=0)

        assert sleeps == []


# ── Proposal merge ────────────────────────────────────────────────────────────

class TestMergeProposals:

    def _doc(self):
        return ParsedDocument(
            preamble="\\begin{document}",
            sections=[
                ExtractedSection(SectionType.EDUCATION, "old education", 0, is_locked=True),
                ExtractedSection(SectionType.EXPERIENCE, "old experience", 1),
            ],
            postamble="\\end{document}",
        )

    def _proposals(self):
        return [
            SectionProposal(section_type=SectionType.EDUCATION, before="old education",
                            after="new education", change_type=ChangeType.MODIFIED),
            SectionProposal(section_type=SectionType.EXPERIENCE, before="old experience",
                            after="new experience", change_type=ChangeType.MODIFIED),
        ]

    def test_selective_acceptance(self):
        merged = merge_proposals(self._doc(), self._proposals(), {SectionType.EXPERIENCE})

        assert "new experience" in merged
        assert "old education" in merged
        assert "new education" not in merged

    def test_explicit_accept_overrides_lock_flag(self):
        merged = merge_proposals(self._doc(), self._proposals(), {SectionType.EDUCATION})
        assert "new education" in merged

    def test_accept_nothing_reproduces_original(self):
        merged = merge_proposals(self._doc(), self._proposals(), set())
        assert "old education" in merged and "old experience" in merged

    def test_none_accepts_everything(self):
        assert resolve_accepted(self._proposals(), None) == {SectionType.EDUCATION, SectionType.EXPERIENCE}
        assert resolve_accepted(self._proposals(), []) == frozenset()


# ── Proposal lifecycle ────────────────────────────────────────────────────────

class TestProposalLifecycle:

    @pytest.fixture
    def completed_job(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id)
        gateway = fake_gateway({
            SectionType.EDUCATION: EDUCATION_REWRITE,
            SectionType.EXPERIENCE: EXPERIENCE_REWRITE,
        })
        return _run(db, job.id, gateway)

    def test_get_proposal(self, db, completed_job):
        proposal = ai_jobs.get_proposal(db, completed_job.id)

        assert proposal.job_id == completed_job.id
        assert [s.section_type for s in proposal.sections] == [SectionType.EDUCATION, SectionType.EXPERIENCE]
        assert all(s.change_type == ChangeType.MODIFIED for s in proposal.sections)
        assert proposal.added_lines > 0
        assert proposal.removed_lines > 0

    def test_proposal_of_queued_job(self, db, base_version, start_job):
        job = start_job(base_version.id)
        with pytest.raises(NotFoundError):
            ai_jobs.get_proposal(db, job.id)

    def test_accept_all(self, db, base_version, completed_job):
        version = ai_jobs.accept_proposal(db, completed_job.id)

        assert version.type == VersionType.AI_GENERATED.value
        assert version.parent_version_id == base_version.id
        assert "scalable payment services" in version.latex_content
        assert "B.S. Computer Science" in version.latex_content

        sections = {SectionType(s.section_type): s for s in section_store.get_sections_for_version(db, version.id)}
        assert sections[SectionType.EXPERIENCE].content == EXPERIENCE_REWRITE
        assert sections[SectionType.EDUCATION].content == EDUCATION_REWRITE

        job = ai_jobs.get_job(db, completed_job.id)
        assert job.new_version_id == version.id
        assert job.proposed_version is None
        assert job.section_proposals == []
        assert job.status == JobStatus.COMPLETED.value

    def test_accept_subset(self, db, base_version, completed_job):
        version = ai_jobs.accept_proposal(db, completed_job.id, [SectionType.EXPERIENCE])

        assert "scalable payment services" in version.latex_content
        assert "B.S. Computer Science" not in version.latex_content
        assert "BS Computer Science" in version.latex_content

        # The merged text re-extracts to the same sections that were stored
        stored = [(s.section_type, s.content) for s in section_store.get_sections_for_version(db, version.id)]
        reparsed = [(s.section_type.value, s.content) for s in extract_sections(version.latex_content).sections]
        assert stored == reparsed

    def test_accept_after_locking_keeps_sections_in_sync(self, db, base_version, completed_job):
        # Locked after the job finished: the accepted rewrite still lands
        section_store.apply_lock_selection(db, base_version.id, [SectionType.EXPERIENCE])

        version = ai_jobs.accept_proposal(db, completed_job.id, [SectionType.EXPERIENCE])

        assert "scalable payment services" in version.latex_content
        stored = section_store.get_sections_for_version(db, version.id)
        reparsed = extract_sections(version.latex_content).sections
        assert [(s.section_type, s.content) for s in stored] == [(s.section_type.value, s.content) for s in reparsed]

        sections = {SectionType(s.section_type): s for s in stored}
        assert sections[SectionType.EXPERIENCE].content == EXPERIENCE_REWRITE
        assert sections[SectionType.EXPERIENCE].is_locked
        assert not sections[SectionType.EDUCATION].is_locked
        assert "scalable payment services" in section_store.assemble_latex_from_sections(db, version.id)

    def test_accept_is_all_or_nothing(self, db, completed_job, monkeypatch):
        def broken_store(*args, **kwargs):
            raise InvariantViolation("duplicate section type")

        monkeypatch.setattr(ai_jobs, "extract_with_inherited_locks", broken_store)

        with pytest.raises(InvariantViolation):
            ai_jobs.accept_proposal(db, completed_job.id)

        ai_generated = db.query(models.ResumeVersion).filter(
            models.ResumeVersion.type == VersionType.AI_GENERATED.value
        ).count()
        assert ai_generated == 0
        job = ai_jobs.get_job(db, completed_job.id)
        assert job.new_version_id is None
        assert job.proposed_version is not None
        assert len(job.section_proposals) == 2

    def test_accept_leaves_base_untouched(self, db, base_version, completed_job, simple_resume):
        before = [(s.section_type, s.content) for s in section_store.get_sections_for_version(db, base_version.id)]
        ai_jobs.accept_proposal(db, completed_job.id)

        assert ai_jobs.get_job(db, completed_job.id).base_version.latex_content == simple_resume
        after = [(s.section_type, s.content) for s in section_store.get_sections_for_version(db, base_version.id)]
        assert after == before

    def test_accept_twice(self, db, completed_job):
        ai_jobs.accept_proposal(db, completed_job.id)
        with pytest.raises(NotFoundError):
            ai_jobs.accept_proposal(db, completed_job.id)

    def test_reject(self, db, completed_job):
        assert ai_jobs.reject_proposal(db, completed_job.id) is True

        with pytest.raises(NotFoundError):
            ai_jobs.get_proposal(db, completed_job.id)
        assert db.query(models.SectionProposalRecord).count() == 0

    def test_refine_creates_child_job(self, db, completed_job):
        refined = ai_jobs.refine_proposal(db, completed_job.id, "Make it shorter")

        assert refined.status == JobStatus.QUEUED.value
        assert refined.parent_job_id == completed_job.id
        assert refined.base_version_id == completed_job.base_version_id
        assert "Make it shorter" in refined.user_instructions

    def test_refine_requires_completed_job(self, db, base_version, start_job):
        job = start_job(base_version.id)
        with pytest.raises(ProposalStateError):
            ai_jobs.refine_proposal(db, job.id, "Make it shorter")

    def test_status_and_listing(self, db, base_version, completed_job):
        status = ai_jobs.get_job_status(db, completed_job.id)
        assert status.status == JobStatus.COMPLETED
        assert status.base_version_id == base_version.id

        listed = ai_jobs.list_jobs_for_version(db, base_version.id)
        assert [j.job_id for j in listed] == [completed_job.id]


# ── Background runner ─────────────────────────────────────────────────────────

class TestJobRunner:

    def test_schedule_runs_job_with_own_session(self, db, base_version, start_job, fake_gateway):
        job = start_job(base_version.id)
        bind = db.get_bind()

        from sqlalchemy.orm import sessionmaker
        factory = sessionmaker(autocommit=False, autoflush=False, bind=bind)
        runner = ai_jobs.JobRunner(
            factory,
            fake_gateway({SectionType.EXPERIENCE: EXPERIENCE_REWRITE}),
            delay_seconds=0,
            timeout_seconds=5,
        )

        async def go():
            await runner.schedule(job.id)

        asyncio.run(go())

        db.expire_all()
        assert ai_jobs.get_job(db, job.id).status == JobStatus.COMPLETED.value
