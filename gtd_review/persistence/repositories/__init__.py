"""Repository implementations."""

from gtd_review.persistence.repositories.review_session_repo import ReviewSessionRepository
from gtd_review.persistence.repositories.review_repo import ReviewRepository
from gtd_review.persistence.repositories.task_repo import TaskRepository

__all__ = [
    "ReviewSessionRepository",
    "ReviewRepository",
    "TaskRepository",
]
