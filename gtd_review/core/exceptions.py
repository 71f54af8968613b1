"""
Custom exception hierarchy for the review system.

All application exceptions inherit from ReviewSystemError.
"""


class ReviewSystemError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ReviewSystemError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(ReviewSystemError):
    """Input validation failed. Rejected before reaching the store."""

    pass


class InvalidTransitionError(ValidationError):
    """Requested transition is not allowed from the session's current status."""

    pass


class StepOrderError(ValidationError):
    """Step completed out of order, or navigation beyond the first step."""

    pass


class StepDataError(ValidationError):
    """Step data does not match the shape the step expects."""

    pass


# =============================================================================
# Session Errors
# =============================================================================


class SessionError(ReviewSystemError):
    """Review session error."""

    pass


class SessionNotFoundError(SessionError):
    """Review session does not exist."""

    pass


class ReviewAlreadyCompletedError(SessionError):
    """A review of this type was already completed in the current period."""

    pass


# =============================================================================
# Concurrency Errors
# =============================================================================


class ConcurrencyConflictError(ReviewSystemError):
    """Session is no longer in the state the caller expected.

    The caller should reload the session instead of retrying blindly.
    """

    pass


class TransitionInProgressError(ConcurrencyConflictError):
    """Another transition on the same session has not finished yet."""

    pass


# =============================================================================
# Repository Errors
# =============================================================================


class RepositoryError(ReviewSystemError):
    """Persistence or task store I/O failed. Safe to retry."""

    pass


# =============================================================================
# Task Errors
# =============================================================================


class TaskError(ReviewSystemError):
    """Task store operation error."""

    pass


class TaskNotFoundError(TaskError):
    """Task does not exist."""

    pass


class ProjectNotFoundError(TaskError):
    """Project does not exist."""

    pass
