# File: backend/app/core/errors.py
"""
Exception taxonomy shared by the services.

Services raise these; the API layer maps them to HTTP status codes.
Structural degradation (coarser section granularity) and validation
rejections are recovered locally and only logged, so they have no
exception type here.
"""


class StudioError(Exception):
    """Base class for all service-level errors."""


class NotFoundError(StudioError):
    """A referenced version, section, job or proposal does not exist."""


class InvariantViolation(StudioError):
    """Section set breaks the per-revision invariants (duplicate type, gapped order)."""


class InvalidJobTransition(StudioError):
    """A job state change that would move backwards or leave a terminal state."""


class ProposalStateError(StudioError):
    """Proposal is missing or its job is not in a state that allows the operation."""


class SectionLockError(StudioError):
    """Lock flag changes are only allowed while a version is still mutable."""


class NoEditableSections(StudioError):
    """Every section of the base version is locked, so a job has nothing to revise."""
