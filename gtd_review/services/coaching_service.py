"""
Coaching prompts for review steps.

Tips are kept in config/coaching_prompts.yaml, grouped by review type and
step. For a step, the step's prompts and the type's general prompts are
filtered by their conditions, ordered by priority and capped.
"""

from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Literal, Optional

import structlog
import yaml
from pydantic import BaseModel, Field

from gtd_review.core.config import ReviewConfig, review_config as default_review_config
from gtd_review.core.exceptions import ConfigurationError
from gtd_review.domain.models.review import ReviewType, ReviewWorldView
from gtd_review.domain.models.task import TaskFilter, TaskStatus
from gtd_review.services.protocols import ITaskRepository
from gtd_review.services.review_data_aggregator import utc_now

log = structlog.get_logger(__name__)

GENERAL_KEY = "general"
COMPLETION_KEY = "completion"


class PromptPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = {PromptPriority.HIGH: 0, PromptPriority.MEDIUM: 1, PromptPriority.LOW: 2}


class CoachingPrompt(BaseModel):
    """One coaching tip."""

    id: str
    type: Literal["tip", "insight", "encouragement", "warning", "suggestion"]
    title: str
    message: str
    actionable: bool = False
    priority: PromptPriority = PromptPriority.MEDIUM
    conditions: List[str] = Field(default_factory=list)


PromptTable = Dict[ReviewType, Dict[str, List[CoachingPrompt]]]


class CoachingPromptLibrary:
    """Loads and caches the coaching prompt table.

    Example:
        library = CoachingPromptLibrary()
        prompts = library.for_step(ReviewType.WEEKLY, "inbox_process")
    """

    def __init__(
        self,
        config_dir: str | Path | None = None,
        prompts_file: Optional[str] = None,
    ):
        """Initialize library.

        Args:
            config_dir: Directory holding the prompts file (default: <project>/config)
            prompts_file: File name (default: coaching.prompts_file from review config)
        """
        if config_dir is None:
            project_root = Path(__file__).parent.parent.parent
            config_dir = project_root / "config"

        self.path = Path(config_dir) / (
            prompts_file or default_review_config.coaching.prompts_file
        )
        self._table: Optional[PromptTable] = None

    def load(self) -> PromptTable:
        """
        Parse the prompts file (once).

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        if self._table is not None:
            return self._table

        if not self.path.exists():
            raise ConfigurationError(f"Coaching prompts file not found: {self.path}")

        with open(self.path) as f:
            raw = yaml.safe_load(f) or {}

        table: PromptTable = {}
        try:
            for type_name, steps in raw.items():
                review_type = ReviewType(type_name)
                table[review_type] = {
                    step_id: [CoachingPrompt(**p) for p in (prompts or [])]
                    for step_id, prompts in (steps or {}).items()
                }
        except (ValueError, TypeError, AttributeError) as e:
            raise ConfigurationError(f"Invalid coaching prompts in {self.path}: {e}") from e

        log.info(
            "coaching_prompts_loaded",
            path=str(self.path),
            prompts=sum(len(p) for steps in table.values() for p in steps.values()),
        )
        self._table = table
        return table

    def for_step(self, review_type: ReviewType, step_id: Optional[str]) -> List[CoachingPrompt]:
        """Step prompts followed by the type's general prompts."""
        steps = self.load().get(review_type, {})
        step_prompts = steps.get(step_id, []) if step_id else []
        return [*step_prompts, *steps.get(GENERAL_KEY, [])]


class CoachingService:
    """Selects coaching prompts for the step a user is on."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        library: Optional[CoachingPromptLibrary] = None,
        config: Optional[ReviewConfig] = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self.task_repo = task_repo
        self.library = library or CoachingPromptLibrary()
        self.config = config or default_review_config
        self.now = now

    async def prompts_for(
        self,
        user_id: str,
        view: ReviewWorldView,
        step_id: Optional[str],
        compact: bool = False,
        dismissed: Optional[List[str]] = None,
    ) -> List[CoachingPrompt]:
        """
        Pick prompts for a step.

        Args:
            user_id: Reviewer (needed to check project activity)
            view: Current world view the conditions are evaluated on
            step_id: Current step, "completion" after the review, or None for general only
            compact: Return a single prompt
            dismissed: Prompt ids the user has dismissed

        Returns:
            Prompts ordered high > medium > low, capped at the configured maximum
        """
        dismissed_ids = set(dismissed or [])
        evaluated: Dict[str, bool] = {}
        selected: List[CoachingPrompt] = []

        for prompt in self.library.for_step(view.review_type, step_id):
            if prompt.id in dismissed_ids:
                continue
            matches = True
            for condition in prompt.conditions:
                if condition not in evaluated:
                    evaluated[condition] = await self._check_condition(
                        condition, user_id, view
                    )
                if not evaluated[condition]:
                    matches = False
                    break
            if matches:
                selected.append(prompt)

        selected.sort(key=lambda p: PRIORITY_ORDER[p.priority])
        limit = (
            self.config.coaching.compact_max_prompts
            if compact
            else self.config.coaching.max_prompts
        )
        return selected[:limit]

    async def _check_condition(
        self, condition: str, user_id: str, view: ReviewWorldView
    ) -> bool:
        if condition == "has_overdue_tasks":
            return len(view.overdue_tasks) > 0
        if condition == "large_inbox":
            return len(view.inbox_items) > self.config.coaching.large_inbox_threshold
        if condition == "has_stalled_projects":
            return await self._has_stalled_projects(user_id, view)

        log.warning("coaching_condition_unknown", condition=condition)
        return True

    async def _has_stalled_projects(self, user_id: str, view: ReviewWorldView) -> bool:
        """An active project older than the threshold with no recent completion."""
        cutoff = self.now() - timedelta(days=self.config.coaching.stalled_project_days)
        for project in view.all_projects:
            if project.created_at > cutoff:
                continue
            recent = await self.task_repo.list(
                TaskFilter(
                    user_id=user_id,
                    project_id=project.id,
                    statuses=[TaskStatus.COMPLETED],
                    completed_after=cutoff,
                )
            )
            if not recent:
                return True
        return False
