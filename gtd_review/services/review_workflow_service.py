"""
Review workflow orchestration.

Drives a ReviewSession through its checklist: start, complete steps, go
back, pause, resume, abandon and complete. Every operation reloads the
session from the store, checks the transition table, and persists through
a version compare-and-set; the session returned is always the one read
back from the store, never an unsaved in-memory copy.
"""

from contextlib import asynccontextmanager
from datetime import datetime, time, timedelta, timezone
from typing import Any, AsyncIterator, Callable, List, Mapping, Optional
from uuid import uuid4

import structlog

from gtd_review.core.config import settings
from gtd_review.core.exceptions import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    ReviewAlreadyCompletedError,
    SessionNotFoundError,
    StepOrderError,
)
from gtd_review.core.logging import review_context
from gtd_review.domain.models.review import (
    Review,
    ReviewProgress,
    ReviewSession,
    ReviewStatus,
    ReviewType,
    ReviewWorldView,
    can_transition,
)
from gtd_review.domain.models.step_data import (
    merge_step_data,
    reflection_notes,
    reviewed_counts,
    validate_step_data,
)
from gtd_review.persistence.repositories.review_session_repo import (
    LiveSessionExistsError,
    ReviewSessionRepository,
)
from gtd_review.services.review_data_aggregator import ReviewDataAggregator, utc_now
from gtd_review.services.session_locks import SessionLocks
from gtd_review.services.step_catalog import required_step_ids, step_ids_for
from gtd_review.services.task_action_dispatcher import TaskAction, TaskActionDispatcher

log = structlog.get_logger(__name__)


def period_start(review_type: ReviewType, now: datetime, week_start_day: int) -> datetime:
    """Start of the period a review of this type covers (UTC midnight).

    Daily reviews cover the calendar day; weekly reviews cover the week
    beginning on week_start_day (0 = Monday).
    """
    today = now.astimezone(timezone.utc).date()
    if review_type == ReviewType.WEEKLY:
        today -= timedelta(days=(today.weekday() - week_start_day) % 7)
    return datetime.combine(today, time.min, tzinfo=timezone.utc)


class ReviewWorkflowService:
    """Controller for the guided review state machine."""

    def __init__(
        self,
        session_repo: ReviewSessionRepository,
        aggregator: ReviewDataAggregator,
        locks: Optional[SessionLocks] = None,
        dispatcher: Optional[TaskActionDispatcher] = None,
        now: Callable[[], datetime] = utc_now,
        week_start_day: Optional[int] = None,
    ):
        """
        Initialize workflow service.

        Args:
            session_repo: Review session store
            aggregator: World view and insights source
            locks: Transition locks (share one instance per process)
            dispatcher: Task action dispatcher (built from the aggregator if None)
            now: Clock returning an aware UTC datetime
            week_start_day: First weekday of the weekly period (settings default)
        """
        self.session_repo = session_repo
        self.aggregator = aggregator
        self.locks = locks or SessionLocks()
        self.now = now
        self.dispatcher = dispatcher or TaskActionDispatcher(
            aggregator.task_repo, aggregator, now=now
        )
        self.week_start_day = (
            settings.week_start_day if week_start_day is None else week_start_day
        )

    # ==================== START ====================

    async def start(self, user_id: str, review_type: ReviewType) -> ReviewSession:
        """
        Start a review, or return the one already in flight.

        Args:
            user_id: Reviewer
            review_type: daily or weekly

        Returns:
            The live session of this type (existing or newly created)

        Raises:
            ReviewAlreadyCompletedError: If one was completed this period
        """
        with review_context(user_id=user_id, review_type=review_type.value):
            async with self.locks.starting(user_id, review_type.value):
                live = await self.session_repo.find_live(user_id, review_type)
                if live is not None:
                    log.info(
                        "review_session_resumed_existing",
                        session_id=live.id,
                        status=live.status.value,
                    )
                    return live

                now = self.now()
                since = period_start(review_type, now, self.week_start_day)
                done = await self.session_repo.find_completed_since(
                    user_id, review_type, since
                )
                if done is not None:
                    raise ReviewAlreadyCompletedError(
                        f"{review_type.value.capitalize()} review already completed "
                        f"at {done.completed_at.isoformat()}"
                    )

                step_ids = step_ids_for(review_type)
                session = ReviewSession(
                    id=str(uuid4()),
                    user_id=user_id,
                    type=review_type,
                    status=ReviewStatus.ACTIVE,
                    current_step=0,
                    total_steps=len(step_ids),
                    step_ids=step_ids,
                    started_at=now,
                )

                try:
                    created = await self.session_repo.create(session)
                except LiveSessionExistsError:
                    # Another process inserted first
                    existing = await self.session_repo.find_live(user_id, review_type)
                    if existing is None:
                        raise
                    return existing

                log.info(
                    "review_session_started",
                    session_id=created.id,
                    total_steps=created.total_steps,
                )
                return created

    # ==================== STEPS ====================

    async def complete_step(
        self,
        session_id: str,
        step_id: str,
        data: Optional[Mapping[str, Any]] = None,
        expected_version: Optional[int] = None,
    ) -> ReviewSession:
        """
        Complete the current step and advance.

        Completing the final step completes the review. Repeating the step
        just completed (a replayed request) merges its data again without
        advancing a second time.

        Args:
            session_id: Session to advance
            step_id: Step the data belongs to
            data: Step data (validated against the step's model)
            expected_version: Version the caller last saw

        Returns:
            Persisted session

        Raises:
            InvalidTransitionError: If the session is not active
            StepOrderError: If step_id is neither the current nor the replayed step
            StepDataError: If data does not fit the step
        """
        async with self._transition(session_id):
            session = await self._load(session_id, expected_version)
            self._require_status(session, ReviewStatus.ACTIVE, "complete a step of")

            index = session.current_step
            is_current = step_id == session.step_ids[index]
            is_replay = (
                index > 0
                and step_id == session.step_ids[index - 1]
                and step_id in session.completed_steps
            )
            if not (is_current or is_replay):
                raise StepOrderError(
                    f"Cannot complete step '{step_id}' while on step "
                    f"'{session.current_step_id}' ({index + 1}/{session.total_steps})"
                )

            validated = validate_step_data(session.type, step_id, data)
            updated = session.model_copy(deep=True)
            updated.session_data[step_id] = merge_step_data(
                updated.session_data.get(step_id), validated
            )

            if is_replay and not is_current:
                saved = await self.session_repo.save(updated, session.version)
                log.info(
                    "review_step_replayed",
                    step_id=step_id,
                    current_step=saved.current_step,
                )
                return saved

            if step_id not in updated.completed_steps:
                updated.completed_steps.append(step_id)

            if session.is_last_step:
                saved = await self._finalize(
                    updated, session.version, reflection_notes(updated.session_data)
                )
            else:
                updated.current_step = index + 1
                saved = await self.session_repo.save(updated, session.version)

            log.info(
                "review_step_completed",
                step_id=step_id,
                current_step=saved.current_step,
                total_steps=saved.total_steps,
                status=saved.status.value,
            )
        return saved

    async def previous_step(
        self, session_id: str, expected_version: Optional[int] = None
    ) -> ReviewSession:
        """
        Go back one step. Completed steps and their data are kept.

        Raises:
            InvalidTransitionError: If the session is not active
            StepOrderError: If already on the first step
        """
        async with self._transition(session_id):
            session = await self._load(session_id, expected_version)
            self._require_status(session, ReviewStatus.ACTIVE, "navigate")
            if session.current_step == 0:
                raise StepOrderError("Already on the first step")

            updated = session.model_copy(deep=True)
            updated.current_step -= 1
            saved = await self.session_repo.save(updated, session.version)
            log.info("review_step_back", current_step=saved.current_step)
        return saved

    # ==================== LIFECYCLE ====================

    async def pause(
        self, session_id: str, expected_version: Optional[int] = None
    ) -> ReviewSession:
        async with self._transition(session_id):
            session = await self._load(session_id, expected_version)
            self._require_transition(session, ReviewStatus.PAUSED)

            updated = session.model_copy(deep=True)
            updated.status = ReviewStatus.PAUSED
            updated.paused_at = self.now()
            saved = await self.session_repo.save(updated, session.version)
            log.info("review_session_paused", step=saved.current_step)
        return saved

    async def resume(
        self, session_id: str, expected_version: Optional[int] = None
    ) -> ReviewSession:
        """Resume a paused review at the step it was paused on."""
        async with self._transition(session_id):
            session = await self._load(session_id, expected_version)
            if session.status != ReviewStatus.PAUSED:
                raise InvalidTransitionError(
                    f"Cannot resume a {session.status.value} review"
                )

            updated = session.model_copy(deep=True)
            updated.status = ReviewStatus.ACTIVE
            updated.resumed_at = self.now()
            saved = await self.session_repo.save(updated, session.version)
            log.info("review_session_resumed", step=saved.current_step)
        return saved

    async def abandon(
        self, session_id: str, expected_version: Optional[int] = None
    ) -> ReviewSession:
        """Abandon a review. It cannot be resumed afterwards."""
        async with self._transition(session_id):
            session = await self._load(session_id, expected_version)
            self._require_transition(session, ReviewStatus.ABANDONED)

            updated = session.model_copy(deep=True)
            updated.status = ReviewStatus.ABANDONED
            saved = await self.session_repo.save(updated, session.version)
            log.info("review_session_abandoned", step=saved.current_step)
        return saved

    async def complete(
        self,
        session_id: str,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ReviewSession:
        """
        Complete a review that reached its final step.

        Optional steps may be left incomplete; every required step must be
        in completed_steps.

        Args:
            session_id: Session to complete
            notes: Closing notes (falls back to the reflection step's notes)
            expected_version: Version the caller last saw

        Raises:
            InvalidTransitionError: If the session is not active
            StepOrderError: If not on the final step, or required steps are missing
        """
        async with self._transition(session_id):
            session = await self._load(session_id, expected_version)
            self._require_transition(session, ReviewStatus.COMPLETED)
            if not session.is_last_step:
                raise StepOrderError(
                    f"Review is on step {session.current_step + 1} of "
                    f"{session.total_steps}; finish the remaining steps first"
                )

            missing = [
                step_id
                for step_id in required_step_ids(session.step_ids, session.type)
                if step_id not in session.completed_steps
            ]
            if missing:
                raise StepOrderError(
                    f"Required steps not completed: {', '.join(missing)}"
                )

            updated = session.model_copy(deep=True)
            saved = await self._finalize(
                updated,
                session.version,
                notes if notes is not None else reflection_notes(session.session_data),
            )

        return saved

    # ==================== TASK ACTIONS ====================

    async def apply_task_action(
        self,
        session_id: str,
        task_id: str,
        action: TaskAction,
        project_id: Optional[str] = None,
    ) -> ReviewWorldView:
        """
        Act on a task from inside a live review.

        Raises:
            InvalidTransitionError: If the review has ended
            TaskNotFoundError: If the task does not exist
        """
        session = await self.get_session(session_id)
        if not session.is_live:
            raise InvalidTransitionError(
                f"Cannot act on tasks from a {session.status.value} review"
            )
        return await self.dispatcher.dispatch(session, task_id, action, project_id)

    # ==================== READS ====================

    async def get_session(self, session_id: str) -> ReviewSession:
        """
        Raises:
            SessionNotFoundError: If the session does not exist
        """
        session = await self.session_repo.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Review session {session_id} not found")
        return session

    async def get_live_session(
        self, user_id: str, review_type: ReviewType
    ) -> Optional[ReviewSession]:
        return await self.session_repo.find_live(user_id, review_type)

    async def get_world_view(self, session_id: str) -> ReviewWorldView:
        session = await self.get_session(session_id)
        return await self.aggregator.load(session.user_id, session.type)

    async def list_sessions(
        self,
        user_id: str,
        review_type: Optional[ReviewType] = None,
        limit: int = 20,
    ) -> List[ReviewSession]:
        return await self.session_repo.list_for_user(user_id, review_type, limit)

    # ==================== HELPERS ====================

    @asynccontextmanager
    async def _transition(self, session_id: str) -> AsyncIterator[None]:
        with review_context(session_id=session_id):
            async with self.locks.transition(session_id):
                yield

    async def _load(
        self, session_id: str, expected_version: Optional[int]
    ) -> ReviewSession:
        session = await self.get_session(session_id)
        if expected_version is not None and session.version != expected_version:
            raise ConcurrencyConflictError(
                f"Review session {session_id} is at version {session.version}, "
                f"not {expected_version}; reload it"
            )
        return session

    @staticmethod
    def _require_transition(session: ReviewSession, target: ReviewStatus) -> None:
        if not can_transition(session.status, target):
            raise InvalidTransitionError(
                f"Cannot move a {session.status.value} review to {target.value}"
            )

    @staticmethod
    def _require_status(
        session: ReviewSession, status: ReviewStatus, action: str
    ) -> None:
        if session.status != status:
            raise InvalidTransitionError(
                f"Cannot {action} a {session.status.value} review"
            )

    async def _finalize(
        self,
        session: ReviewSession,
        expected_version: int,
        notes: Optional[str],
    ) -> ReviewSession:
        """Mark a session completed and write its history record."""
        insights = await self.aggregator.load_insights(session.user_id, session.type)
        now = self.now()

        session.status = ReviewStatus.COMPLETED
        session.completed_at = now
        session.notes = notes
        session.insights = insights

        counts = reviewed_counts(session.session_data)
        review = Review(
            id=str(uuid4()),
            user_id=session.user_id,
            type=session.type,
            session_id=session.id,
            completed_at=now,
            notes=notes,
            duration_minutes=max(int((now - session.started_at).total_seconds() // 60), 0),
            tasks_reviewed=counts["tasks_reviewed"],
            projects_reviewed=counts["projects_reviewed"],
            progress=ReviewProgress(
                current_step=session.current_step,
                total_steps=session.total_steps,
                completed_steps=list(session.completed_steps),
                started_at=session.started_at,
            ),
        )

        saved = await self.session_repo.complete(
            session,
            expected_version,
            review,
            inbox_items_processed=counts["inbox_items_processed"],
        )
        log.info(
            "review_session_completed",
            session_id=saved.id,
            user_id=saved.user_id,
            review_type=saved.type.value,
            duration_minutes=review.duration_minutes,
            tasks_completed=insights.tasks_completed,
        )
        return saved
