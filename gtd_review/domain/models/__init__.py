"""Domain models package."""

from .review import (
    ReviewType,
    ReviewStatus,
    ReviewSession,
    ReviewInsights,
    ReviewWorldView,
    Review,
    ReviewMetrics,
    ReviewProgress,
    ReviewAnalytics,
    StepDefinition,
)
from .task import (
    Task,
    Project,
    TaskStatus,
    ProjectStatus,
    TaskContext,
    TaskFilter,
    TaskPatch,
    TaskSuggestion,
)

__all__ = [
    "ReviewType",
    "ReviewStatus",
    "ReviewSession",
    "ReviewInsights",
    "ReviewWorldView",
    "Review",
    "ReviewMetrics",
    "ReviewProgress",
    "ReviewAnalytics",
    "StepDefinition",
    "Task",
    "Project",
    "TaskStatus",
    "ProjectStatus",
    "TaskContext",
    "TaskFilter",
    "TaskPatch",
    "TaskSuggestion",
]
