# File: backend/app/services/ai_jobs.py
"""
Revision jobs: rewrite the unlocked sections of a resume version.

A job moves QUEUED -> RUNNING -> COMPLETED | FAILED and never goes back.
Sections are processed one at a time in order_index order with a fixed
pause between generation calls. Every candidate goes through the section
validator; a rejected or failed candidate leaves the section unchanged
instead of failing the job.

Generation failures (GenerationError, timeouts) are local to the section
that triggered them. Anything else aborts the job, which is then marked
FAILED with the exception message.
"""
import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    InvalidJobTransition,
    NoEditableSections,
    NotFoundError,
    ProposalStateError,
    StudioError,
)
from app.db import models
from app.llm.gateway import GenerationError, GenerationGateway
from app.llm.prompts import build_system_prompt, build_user_prompt, clean_generated_latex
from app.schemas.ai_job import (
    ChangeType,
    JobMode,
    JobStatus,
    JobStatusResponse,
    ProposalResponse,
    SectionProposal,
    StartTailoringRequest,
)
from app.schemas.sections import SectionType
from app.schemas.version import VersionStatus, VersionType
from app.services.diff import count_changes
from app.services.latex_parser import assemble_with_modifications
from app.services.proposal_merge import merge_proposals, resolve_accepted
from app.services.section_validator import validate_section
from app.services.sections import (
    apply_lock_selection,
    assemble_latex_from_sections,
    extract_and_store_sections,
    extract_with_inherited_locks,
    get_version_or_raise,
    parsed_document_for_version,
)
from app.services.versions import get_job_description

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[JobStatus, Set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.RUNNING, JobStatus.FAILED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}

UNKNOWN_ERROR = "Unknown error"


def get_job(db: Session, job_id: int) -> models.AIJob:
    job = db.query(models.AIJob).filter(models.AIJob.id == job_id).first()
    if not job:
        raise NotFoundError(f"AI job {job_id} not found")
    return job


def transition_job(
    db: Session,
    job: models.AIJob,
    new_status: JobStatus,
    error_message: Optional[str] = None,
) -> models.AIJob:
    current = JobStatus(job.status)
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidJobTransition(f"AI job {job.id} cannot move from {current.value} to {new_status.value}")

    job.status = new_status.value
    if new_status == JobStatus.FAILED:
        job.error_message = error_message or UNKNOWN_ERROR
    db.commit()
    db.refresh(job)
    logger.info(f"[AI-JOB] Job {job.id}: {current.value} -> {new_status.value}")
    return job


def mark_job_failed(db: Session, job_id: int, error_message: Optional[str]) -> Optional[models.AIJob]:
    """Record a failure unless the job already reached a terminal state."""
    db.rollback()
    job = db.query(models.AIJob).filter(models.AIJob.id == job_id).first()
    if not job:
        return None
    if JobStatus(job.status) in (JobStatus.COMPLETED, JobStatus.FAILED):
        logger.warning(f"[AI-JOB] Job {job_id} already {job.status}, not recording failure: {error_message}")
        return job
    return transition_job(db, job, JobStatus.FAILED, error_message=error_message)


def start_tailoring(db: Session, request: StartTailoringRequest) -> models.AIJob:
    get_version_or_raise(db, request.base_version_id)
    if request.job_description_id is not None:
        get_job_description(db, request.job_description_id)

    if request.locked_sections is not None:
        apply_lock_selection(db, request.base_version_id, request.locked_sections)

    job = models.AIJob(
        base_version_id=request.base_version_id,
        job_description_id=request.job_description_id,
        mode=request.mode.value,
        status=JobStatus.QUEUED.value,
        user_instructions=request.user_instructions,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(f"[AI-JOB] Created job {job.id} for version {job.base_version_id} (mode={job.mode})")
    return job


def refine_proposal(db: Session, job_id: int, feedback: str) -> models.AIJob:
    """Queue a follow-up job on the same base version with the user's feedback."""
    parent = get_job(db, job_id)
    if JobStatus(parent.status) != JobStatus.COMPLETED:
        raise ProposalStateError("Only a completed job can be refined")

    instructions = feedback
    if parent.user_instructions:
        instructions = f"{parent.user_instructions}\n\nFeedback on the previous proposal:\n{feedback}"

    job = models.AIJob(
        base_version_id=parent.base_version_id,
        job_description_id=parent.job_description_id,
        parent_job_id=parent.id,
        mode=parent.mode,
        status=JobStatus.QUEUED.value,
        user_instructions=instructions,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(f"[AI-JOB] Created refinement job {job.id} from job {parent.id}")
    return job


async def _generate_candidate(
    gateway: GenerationGateway,
    section_type: SectionType,
    content: str,
    mode: JobMode,
    job_description: Optional[str],
    user_instructions: Optional[str],
    timeout_seconds: Optional[float],
) -> Optional[str]:
    """Ask the gateway for one section. None when the call failed or timed out."""
    system_prompt = build_system_prompt(section_type, mode)
    user_prompt = build_user_prompt(section_type, content, job_description, user_instructions)
    try:
        if timeout_seconds:
            raw = await asyncio.wait_for(gateway.generate(system_prompt, user_prompt), timeout=timeout_seconds)
        else:
            raw = await gateway.generate(system_prompt, user_prompt)
    except (GenerationError, asyncio.TimeoutError) as e:
        logger.warning(f"[AI-JOB] Generation failed for {section_type.value}, keeping original: {str(e) or type(e).__name__}")
        return None
    return clean_generated_latex(raw or "")


async def _build_proposals(
    job: models.AIJob,
    sections: List[models.ResumeSection],
    gateway: GenerationGateway,
    delay_seconds: float,
    timeout_seconds: Optional[float],
) -> List[SectionProposal]:
    unlocked = [s for s in sections if not s.is_locked]
    logger.info(
        f"[AI-JOB] Job {job.id}: {len(sections)} sections, "
        f"{len(sections) - len(unlocked)} locked, {len(unlocked)} to revise"
    )
    if not unlocked:
        raise NoEditableSections("All sections are locked; there is nothing for the assistant to change")

    mode = JobMode(job.mode)
    job_description = job.job_description.raw_text if job.job_description else None

    proposals: List[SectionProposal] = []
    calls = 0
    for section in sections:
        section_type = SectionType(section.section_type)
        if section.is_locked:
            proposals.append(_unchanged(section_type, section.content))
            continue

        if calls and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        calls += 1

        candidate = await _generate_candidate(
            gateway, section_type, section.content, mode,
            job_description, job.user_instructions, timeout_seconds,
        )
        if candidate is None:
            proposals.append(_unchanged(section_type, section.content))
            continue

        verdict = validate_section(section.content, candidate)
        if not verdict.accepted:
            logger.warning(f"[VALIDATOR] Rejected {section_type.value} candidate: {verdict.reason}")
            proposals.append(_unchanged(section_type, section.content))
        elif candidate == section.content:
            proposals.append(_unchanged(section_type, section.content))
        else:
            proposals.append(SectionProposal(
                section_type=section_type,
                before=section.content,
                after=candidate,
                change_type=ChangeType.MODIFIED,
            ))
    return proposals


def _unchanged(section_type: SectionType, content: str) -> SectionProposal:
    return SectionProposal(
        section_type=section_type,
        before=content,
        after=content,
        change_type=ChangeType.UNCHANGED,
    )


async def execute_ai_job(
    db: Session,
    job_id: int,
    gateway: Optional[GenerationGateway],
    delay_seconds: Optional[float] = None,
    timeout_seconds: Optional[float] = None,
) -> models.AIJob:
    """
    Run a QUEUED job to completion.

    Failures inside the pipeline are recorded on the job, not raised.
    """
    delay_seconds = settings.GENERATION_DELAY_SECONDS if delay_seconds is None else delay_seconds
    timeout_seconds = settings.GENERATION_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds

    job = transition_job(db, get_job(db, job_id), JobStatus.RUNNING)

    try:
        if gateway is None:
            raise StudioError("No generation provider is configured")

        # Lock state is read once; later toggles do not affect this job
        sections = extract_and_store_sections(db, job.base_version_id)
        locked_types = [s.section_type for s in sections if s.is_locked]

        proposals = await _build_proposals(job, sections, gateway, delay_seconds, timeout_seconds)

        modifications = {
            p.section_type: p.after for p in proposals if p.change_type == ChangeType.MODIFIED
        }
        proposed_latex = assemble_with_modifications(
            parsed_document_for_version(db, job.base_version_id),
            modifications,
            locked_sections=locked_types,
        )

        for index, proposal in enumerate(proposals):
            db.add(models.SectionProposalRecord(
                ai_job_id=job.id,
                section_type=proposal.section_type.value,
                order_index=index,
                before=proposal.before,
                after=proposal.after,
                change_type=proposal.change_type.value,
            ))
        db.add(models.ProposedVersion(ai_job_id=job.id, proposed_latex_content=proposed_latex))
        job = transition_job(db, job, JobStatus.COMPLETED)
        logger.info(f"[AI-JOB] Job {job.id} completed: {len(modifications)} of {len(proposals)} sections modified")
        return job
    except Exception as e:
        logger.error(f"[AI-JOB] Job {job_id} failed: {e}", exc_info=True)
        return mark_job_failed(db, job_id, str(e) or UNKNOWN_ERROR)


class JobRunner:
    """
    Fire-and-forget execution of jobs on the running event loop.

    Each job gets its own session. The task body records FAILED itself; the
    done-callback only reports exceptions nobody awaited.

    Session calls are synchronous and run on the event loop; only gateway
    calls and the throttle pause yield. This assumes a fast local database
    such as the default SQLite file.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        gateway: Optional[GenerationGateway],
        delay_seconds: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.gateway = gateway
        self.delay_seconds = delay_seconds
        self.timeout_seconds = timeout_seconds
        self._tasks: Set[asyncio.Task] = set()

    def schedule(self, job_id: int) -> asyncio.Task:
        task = asyncio.create_task(self._run(job_id), name=f"ai-job-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def _run(self, job_id: int) -> None:
        db = self.session_factory()
        try:
            await execute_ai_job(db, job_id, self.gateway, self.delay_seconds, self.timeout_seconds)
        except asyncio.CancelledError:
            mark_job_failed(db, job_id, "Job was cancelled")
            raise
        except Exception as e:
            logger.error(f"[AI-JOB] Job {job_id} crashed outside the pipeline: {e}", exc_info=True)
            mark_job_failed(db, job_id, str(e) or UNKNOWN_ERROR)
        finally:
            db.close()

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"[AI-JOB] Task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[AI-JOB] Task {task.get_name()} raised: {exc}")


def get_job_status(db: Session, job_id: int) -> JobStatusResponse:
    job = get_job(db, job_id)
    return JobStatusResponse(
        job_id=job.id,
        status=JobStatus(job.status),
        mode=JobMode(job.mode),
        base_version_id=job.base_version_id,
        parent_job_id=job.parent_job_id,
        new_version_id=job.new_version_id,
        error_message=job.error_message,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def list_jobs_for_version(db: Session, version_id: int) -> List[JobStatusResponse]:
    get_version_or_raise(db, version_id)
    jobs = (
        db.query(models.AIJob)
        .filter(models.AIJob.base_version_id == version_id)
        .order_by(models.AIJob.created_at.desc(), models.AIJob.id.desc())
        .all()
    )
    return [get_job_status(db, job.id) for job in jobs]


def _completed_job_with_proposal(db: Session, job_id: int) -> models.AIJob:
    job = get_job(db, job_id)
    if not job.proposed_version:
        raise NotFoundError("No proposal found for this job")
    if JobStatus(job.status) != JobStatus.COMPLETED:
        raise ProposalStateError("Job is not completed yet")
    return job


def get_proposal(db: Session, job_id: int) -> ProposalResponse:
    job = _completed_job_with_proposal(db, job_id)
    proposed = job.proposed_version.proposed_latex_content
    changes = count_changes(assemble_latex_from_sections(db, job.base_version_id), proposed)

    return ProposalResponse(
        job_id=job.id,
        proposed_latex_content=proposed,
        sections=[
            SectionProposal(
                section_type=SectionType(record.section_type),
                before=record.before,
                after=record.after,
                change_type=ChangeType(record.change_type),
            )
            for record in job.section_proposals
        ],
        added_lines=changes["added_lines"],
        removed_lines=changes["removed_lines"],
    )


def _discard_proposal(db: Session, job: models.AIJob) -> None:
    for record in list(job.section_proposals):
        db.delete(record)
    if job.proposed_version:
        db.delete(job.proposed_version)


def accept_proposal(
    db: Session,
    job_id: int,
    accepted_sections: Optional[Iterable[SectionType]] = None,
) -> models.ResumeVersion:
    """
    Turn a proposal into a new AI_GENERATED version.

    accepted_sections=None accepts every section; the rest keep their
    original text.
    """
    job = _completed_job_with_proposal(db, job_id)
    proposals = list(job.section_proposals)
    accepted = resolve_accepted(proposals, accepted_sections)

    merged = merge_proposals(parsed_document_for_version(db, job.base_version_id), proposals, accepted)

    version = models.ResumeVersion(
        parent_version_id=job.base_version_id,
        type=VersionType.AI_GENERATED.value,
        status=VersionStatus.DRAFT.value,
        latex_content=merged,
    )
    try:
        db.add(version)
        db.flush()
        # Sections come from the merged text itself; locks toggled since the
        # job ran are carried over as flags only.
        extract_with_inherited_locks(db, job.base_version_id, version.id, commit=False)
        _discard_proposal(db, job)
        job.new_version_id = version.id
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(version)

    logger.info(
        f"[AI-JOB] Accepted proposal of job {job_id} as version {version.id} "
        f"({len(accepted)} of {len(proposals)} sections accepted)"
    )
    return version


def reject_proposal(db: Session, job_id: int) -> bool:
    job = get_job(db, job_id)
    if not job.proposed_version:
        raise NotFoundError("No proposal found for this job")

    _discard_proposal(db, job)
    db.commit()
    logger.info(f"[AI-JOB] Rejected proposal of job {job_id}")
    return True
