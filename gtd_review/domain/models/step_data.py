"""Typed step data written by review steps.

Each review step owns one key of ReviewSession.session_data. The data a
step submits is validated here, at the write boundary, against the model
registered for (review type, step id). Models accept extra keys so newer
clients can add fields, and steps without a registered model pass through
as long as their data is a JSON object.

Keys are stored as the client sent them (camelCase aliases such as
``processedItems``); snake_case field names are accepted on input.
"""

from typing import Any, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from gtd_review.core.exceptions import StepDataError
from gtd_review.domain.models.review import ReviewType


class StepData(BaseModel):
    """Base for step data variants."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class WelcomeData(StepData):
    pass


class InboxProcessData(StepData):
    processed_items: List[str] = Field(default_factory=list, alias="processedItems")


class ProjectReviewData(StepData):
    reviewed_projects: List[str] = Field(default_factory=list, alias="reviewedProjects")


class DailyCalendarCheckData(StepData):
    calendar_reviewed: bool = Field(default=False, alias="calendarReviewed")
    conflicts: str = ""


class WeeklyCalendarCheckData(StepData):
    past_week_reviewed: bool = Field(default=False, alias="pastWeekReviewed")
    upcoming_reviewed: bool = Field(default=False, alias="upcomingReviewed")


class TaskTriageData(StepData):
    reviewed_task_ids: List[str] = Field(default_factory=list, alias="reviewedTaskIds")


class WaitingForReviewData(StepData):
    reviewed_item_ids: List[str] = Field(default_factory=list, alias="reviewedItemIds")


class SomedayReviewData(StepData):
    reviewed_item_ids: List[str] = Field(default_factory=list, alias="reviewedItemIds")
    activated_items: List[str] = Field(default_factory=list, alias="activatedItems")


class DailyPlanningData(StepData):
    tomorrows_plan: str = Field(default="", alias="tomorrowsPlan")
    priorities: str = ""


class WeeklyPlanningData(StepData):
    weekly_goals: str = Field(default="", alias="weeklyGoals")


class DailyReflectionData(StepData):
    notes: str = ""
    wins: str = ""
    improvements: str = ""


class WeeklyReflectionData(StepData):
    reflection_notes: str = Field(default="", alias="reflectionNotes")


STEP_DATA_MODELS: Dict[ReviewType, Dict[str, Type[StepData]]] = {
    ReviewType.DAILY: {
        "welcome": WelcomeData,
        "calendar_check": DailyCalendarCheckData,
        "task_triage": TaskTriageData,
        "waiting_for_review": WaitingForReviewData,
        "planning": DailyPlanningData,
        "reflection": DailyReflectionData,
    },
    ReviewType.WEEKLY: {
        "welcome": WelcomeData,
        "inbox_process": InboxProcessData,
        "project_review": ProjectReviewData,
        "calendar_check": WeeklyCalendarCheckData,
        "waiting_for_review": WaitingForReviewData,
        "someday_review": SomedayReviewData,
        "planning": WeeklyPlanningData,
        "reflection": WeeklyReflectionData,
    },
}


def validate_step_data(
    review_type: ReviewType, step_id: str, data: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """
    Validate data submitted by a step.

    Args:
        review_type: Type of the review the step belongs to
        step_id: Step writing the data
        data: Raw data from the client (None means no fields)

    Returns:
        Dict holding exactly the fields the client supplied, keyed by alias

    Raises:
        StepDataError: If data is not an object or a field has the wrong type
    """
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise StepDataError(
            f"Step '{step_id}' data must be an object, got {type(data).__name__}"
        )

    model = STEP_DATA_MODELS.get(review_type, {}).get(step_id)
    if model is None:
        return dict(data)

    try:
        parsed = model.model_validate(dict(data))
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise StepDataError(f"Invalid data for step '{step_id}': {problems}") from e

    return parsed.model_dump(mode="json", by_alias=True, exclude_unset=True)


def merge_step_data(
    existing: Optional[Mapping[str, Any]], incoming: Mapping[str, Any]
) -> Dict[str, Any]:
    """Shallow merge: fields in incoming overwrite, the rest of existing is kept."""
    merged = dict(existing or {})
    merged.update(incoming)
    return merged


def reflection_notes(session_data: Mapping[str, Mapping[str, Any]]) -> Optional[str]:
    """Notes a reflection step captured, if any."""
    reflection = session_data.get("reflection") or {}
    notes = reflection.get("notes") or reflection.get("reflectionNotes")
    return notes or None


def reviewed_counts(session_data: Mapping[str, Mapping[str, Any]]) -> Dict[str, int]:
    """Count items touched during a review, for the history record."""
    tasks = 0
    for step_id, key in (
        ("inbox_process", "processedItems"),
        ("task_triage", "reviewedTaskIds"),
        ("waiting_for_review", "reviewedItemIds"),
        ("someday_review", "reviewedItemIds"),
    ):
        tasks += len((session_data.get(step_id) or {}).get(key) or [])

    return {
        "tasks_reviewed": tasks,
        "projects_reviewed": len(
            (session_data.get("project_review") or {}).get("reviewedProjects") or []
        ),
        "inbox_items_processed": len(
            (session_data.get("inbox_process") or {}).get("processedItems") or []
        ),
    }
