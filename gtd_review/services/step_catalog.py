"""
Review checklists.

Ordered, read-only step lists for each review type. Sessions snapshot the
step ids of their checklist when they start, so editing a list here never
affects a review already in flight.
"""

from typing import Dict, List, Tuple, Union

from gtd_review.domain.models.review import ReviewType, StepDefinition

DAILY_STEPS: Tuple[StepDefinition, ...] = (
    StepDefinition(
        id="welcome",
        title="Welcome to Daily Review",
        description="Quick check-in with your GTD system",
        estimated_duration="1 min",
    ),
    StepDefinition(
        id="calendar_check",
        title="Calendar Check",
        description="Review today's commitments and appointments",
        estimated_duration="1 min",
    ),
    StepDefinition(
        id="task_triage",
        title="Task Triage",
        description="Review and organize today's tasks",
        estimated_duration="2-3 min",
    ),
    StepDefinition(
        id="waiting_for_review",
        title="Waiting For Review",
        description="Check items you're waiting on from others",
        estimated_duration="1 min",
    ),
    StepDefinition(
        id="planning",
        title="Tomorrow Planning",
        description="Set intentions for tomorrow",
        estimated_duration="2 min",
    ),
    StepDefinition(
        id="reflection",
        title="Quick Reflection",
        description="Note insights and improvements",
        required=False,
        estimated_duration="1 min",
    ),
)

WEEKLY_STEPS: Tuple[StepDefinition, ...] = (
    StepDefinition(
        id="welcome",
        title="Weekly Review Start",
        description="Comprehensive system review and planning",
        estimated_duration="2 min",
    ),
    StepDefinition(
        id="inbox_process",
        title="Inbox Processing",
        description="Get your inbox to zero",
        estimated_duration="10-15 min",
    ),
    StepDefinition(
        id="project_review",
        title="Project Review",
        description="Review all active projects and outcomes",
        estimated_duration="10-15 min",
    ),
    StepDefinition(
        id="calendar_check",
        title="Calendar Review",
        description="Review past week and upcoming commitments",
        estimated_duration="5 min",
    ),
    StepDefinition(
        id="waiting_for_review",
        title="Waiting For Review",
        description="Review and follow up on delegated items",
        estimated_duration="5 min",
    ),
    StepDefinition(
        id="someday_review",
        title="Someday/Maybe Review",
        description="Review and activate someday items",
        estimated_duration="5-10 min",
    ),
    StepDefinition(
        id="planning",
        title="Next Week Planning",
        description="Set priorities and intentions",
        estimated_duration="5-10 min",
    ),
    StepDefinition(
        id="reflection",
        title="Weekly Reflection",
        description="Insights and system improvements",
        required=False,
        estimated_duration="5 min",
    ),
)

STEP_CATALOG: Dict[ReviewType, Tuple[StepDefinition, ...]] = {
    ReviewType.DAILY: DAILY_STEPS,
    ReviewType.WEEKLY: WEEKLY_STEPS,
}


def steps_for(review_type: Union[ReviewType, str]) -> Tuple[StepDefinition, ...]:
    """
    Get the ordered checklist for a review type.

    Raises:
        ValueError: If review_type is not a known ReviewType value
    """
    return STEP_CATALOG[ReviewType(review_type)]


def step_ids_for(review_type: Union[ReviewType, str]) -> List[str]:
    return [step.id for step in steps_for(review_type)]


def required_step_ids(step_ids: List[str], review_type: ReviewType) -> List[str]:
    """Required steps among a session's snapshot.

    Steps no longer in the catalog are treated as required, since the
    snapshot is what the session was started with.
    """
    optional = {step.id for step in steps_for(review_type) if not step.required}
    return [step_id for step_id in step_ids if step_id not in optional]
