"""Tests for ReviewWorkflowService."""

import asyncio
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
import structlog

from gtd_review.core.exceptions import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    RepositoryError,
    ReviewAlreadyCompletedError,
    SessionNotFoundError,
    StepDataError,
    StepOrderError,
    TransitionInProgressError,
)
from gtd_review.domain.models.review import ReviewStatus, ReviewType
from gtd_review.domain.models.task import TaskStatus
from gtd_review.services.review_workflow_service import period_start
from gtd_review.services.task_action_dispatcher import TaskAction

USER_ID = "user-1"

DAILY_STEPS = [
    "welcome",
    "calendar_check",
    "task_triage",
    "waiting_for_review",
    "planning",
    "reflection",
]


async def walk_to(workflow, session, step_index: int):
    """Complete steps until the session sits on step_index."""
    while session.current_step < step_index:
        session = await workflow.complete_step(session.id, session.current_step_id)
    return session


class TestPeriodStart:
    def test_daily_is_utc_midnight(self):
        now = datetime(2026, 3, 11, 23, 30, tzinfo=timezone.utc)

        assert period_start(ReviewType.DAILY, now, 0) == datetime(
            2026, 3, 11, tzinfo=timezone.utc
        )

    def test_weekly_starts_on_configured_day(self):
        wednesday = datetime(2026, 3, 11, 10, tzinfo=timezone.utc)

        assert period_start(ReviewType.WEEKLY, wednesday, 0).date() == date(2026, 3, 9)
        assert period_start(ReviewType.WEEKLY, wednesday, 6).date() == date(2026, 3, 8)
        assert period_start(ReviewType.WEEKLY, wednesday, 2).date() == date(2026, 3, 11)


class TestStart:
    @pytest.mark.asyncio
    async def test_creates_active_session(self, workflow, clock):
        session = await workflow.start(USER_ID, ReviewType.DAILY)

        assert session.status == ReviewStatus.ACTIVE
        assert session.current_step == 0
        assert session.total_steps == 6
        assert session.step_ids == DAILY_STEPS
        assert session.completed_steps == []
        assert session.started_at == clock()
        assert session.version == 1

    @pytest.mark.asyncio
    async def test_start_twice_returns_same_session(self, workflow):
        first = await workflow.start(USER_ID, ReviewType.WEEKLY)
        second = await workflow.start(USER_ID, ReviewType.WEEKLY)

        assert second.id == first.id

    @pytest.mark.asyncio
    async def test_concurrent_starts_resolve_to_one_session(self, workflow):
        first, second = await asyncio.gather(
            workflow.start(USER_ID, ReviewType.DAILY),
            workflow.start(USER_ID, ReviewType.DAILY),
        )

        assert first.id == second.id
        assert len(await workflow.list_sessions(USER_ID)) == 1

    @pytest.mark.asyncio
    async def test_types_are_independent(self, workflow):
        daily = await workflow.start(USER_ID, ReviewType.DAILY)
        weekly = await workflow.start(USER_ID, ReviewType.WEEKLY)

        assert daily.id != weekly.id

    @pytest.mark.asyncio
    async def test_start_returns_paused_session(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        await workflow.pause(session.id)

        again = await workflow.start(USER_ID, ReviewType.DAILY)

        assert again.id == session.id
        assert again.status == ReviewStatus.PAUSED

    @pytest.mark.asyncio
    async def test_start_after_abandon_creates_new(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        await workflow.abandon(session.id)

        fresh = await workflow.start(USER_ID, ReviewType.DAILY)

        assert fresh.id != session.id
        assert fresh.current_step == 0

    @pytest.mark.asyncio
    async def test_daily_already_completed_today(self, workflow, clock):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        await walk_to(workflow, session, 5)
        await workflow.complete(session.id)

        clock.advance(hours=6)
        with pytest.raises(ReviewAlreadyCompletedError):
            await workflow.start(USER_ID, ReviewType.DAILY)

        clock.advance(days=1)
        tomorrow = await workflow.start(USER_ID, ReviewType.DAILY)
        assert tomorrow.id != session.id

    @pytest.mark.asyncio
    async def test_weekly_already_completed_this_week(self, workflow, clock):
        session = await workflow.start(USER_ID, ReviewType.WEEKLY)
        await walk_to(workflow, session, 7)
        await workflow.complete(session.id)

        # Friday of the same week
        clock.advance(days=2)
        with pytest.raises(ReviewAlreadyCompletedError):
            await workflow.start(USER_ID, ReviewType.WEEKLY)

        # Following Monday
        clock.advance(days=3)
        assert (await workflow.start(USER_ID, ReviewType.WEEKLY)).id != session.id


class TestCompleteStep:
    @pytest.mark.asyncio
    async def test_weekly_pause_resume_keeps_data(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.WEEKLY)
        session = await workflow.complete_step(session.id, "welcome")
        session = await workflow.complete_step(
            session.id, "inbox_process", {"processedItems": ["t1", "t2"]}
        )

        paused = await workflow.pause(session.id)
        assert paused.status == ReviewStatus.PAUSED
        assert paused.paused_at is not None

        resumed = await workflow.resume(session.id)

        assert resumed.status == ReviewStatus.ACTIVE
        assert resumed.current_step == 2
        assert resumed.current_step_id == "project_review"
        assert resumed.completed_steps == ["welcome", "inbox_process"]
        assert resumed.session_data["inbox_process"] == {"processedItems": ["t1", "t2"]}

    @pytest.mark.asyncio
    async def test_version_bumps_on_each_transition(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        session = await workflow.complete_step(session.id, "welcome", expected_version=1)

        assert session.version == 2

        session = await workflow.complete_step(
            session.id, "calendar_check", {"calendarReviewed": True}, expected_version=2
        )
        assert session.version == 3

    @pytest.mark.asyncio
    async def test_stale_version_rejected(self, workflow, session_repo):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        await workflow.complete_step(session.id, "welcome")

        with pytest.raises(ConcurrencyConflictError):
            await workflow.complete_step(session.id, "calendar_check", expected_version=1)

        stored = await session_repo.get(session.id)
        assert stored.current_step == 1

    @pytest.mark.asyncio
    async def test_out_of_order_step_rejected(self, workflow, session_repo):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        session = await workflow.complete_step(session.id, "welcome")

        with pytest.raises(StepOrderError):
            await workflow.complete_step(session.id, "planning", {"tomorrowsPlan": "x"})

        stored = await session_repo.get(session.id)
        assert stored.current_step_id == "calendar_check"
        assert stored.version == session.version
        assert "planning" not in stored.session_data

    @pytest.mark.asyncio
    async def test_unknown_step_rejected(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)

        with pytest.raises(StepOrderError):
            await workflow.complete_step(session.id, "inbox_process")

    @pytest.mark.asyncio
    async def test_replay_of_previous_step_merges_without_advancing(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.WEEKLY)
        session = await workflow.complete_step(session.id, "welcome")
        session = await workflow.complete_step(
            session.id, "inbox_process", {"processedItems": ["t1"]}
        )

        replayed = await workflow.complete_step(
            session.id, "inbox_process", {"processedItems": ["t1", "t2"]}
        )

        assert replayed.current_step == 2
        assert replayed.completed_steps == ["welcome", "inbox_process"]
        assert replayed.session_data["inbox_process"] == {"processedItems": ["t1", "t2"]}

    @pytest.mark.asyncio
    async def test_step_data_merged_shallowly(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        session = await workflow.complete_step(session.id, "welcome", {"mood": "ok"})
        session = await workflow.complete_step(session.id, "welcome", {"energy": 3})

        assert session.session_data["welcome"] == {"mood": "ok", "energy": 3}

    @pytest.mark.asyncio
    async def test_invalid_data_rejected(self, workflow, session_repo):
        session = await workflow.start(USER_ID, ReviewType.WEEKLY)
        session = await workflow.complete_step(session.id, "welcome")

        with pytest.raises(StepDataError):
            await workflow.complete_step(
                session.id, "inbox_process", {"processedItems": 5}
            )

        assert (await session_repo.get(session.id)).current_step == 1

    @pytest.mark.asyncio
    async def test_paused_session_cannot_advance(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        await workflow.pause(session.id)

        with pytest.raises(InvalidTransitionError):
            await workflow.complete_step(session.id, "welcome")

    @pytest.mark.asyncio
    async def test_missing_session(self, workflow):
        with pytest.raises(SessionNotFoundError):
            await workflow.complete_step("nope", "welcome")

    @pytest.mark.asyncio
    async def test_concurrent_transition_rejected(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)

        results = await asyncio.gather(
            workflow.complete_step(session.id, "welcome"),
            workflow.complete_step(session.id, "welcome"),
            return_exceptions=True,
        )

        assert results[0].current_step == 1
        assert isinstance(results[1], TransitionInProgressError)

    @pytest.mark.asyncio
    async def test_held_lock_rejects_transition(self, workflow, session_repo):
        session = await workflow.start(USER_ID, ReviewType.DAILY)

        async with workflow.locks.transition(session.id):
            with pytest.raises(TransitionInProgressError):
                await workflow.complete_step(session.id, "welcome")

        assert (await session_repo.get(session.id)).current_step == 0

    @pytest.mark.asyncio
    async def test_store_failure_leaves_session_unchanged(self, workflow, session_repo):
        session = await workflow.start(USER_ID, ReviewType.DAILY)

        with patch.object(
            workflow.session_repo, "save", AsyncMock(side_effect=RepositoryError("disk full"))
        ):
            with pytest.raises(RepositoryError):
                await workflow.complete_step(session.id, "welcome", {"mood": "ok"})

        stored = await session_repo.get(session.id)
        assert stored.current_step == 0
        assert stored.session_data == {}
        assert stored.version == 1


class TestCompletion:
    @pytest.mark.asyncio
    async def test_daily_review_completes_on_last_step(
        self, workflow, clock, make_task, review_repo
    ):
        await make_task("done", TaskStatus.COMPLETED, completed_at=clock())
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        session = await walk_to(workflow, session, 5)
        clock.advance(minutes=12)

        done = await workflow.complete_step(
            session.id, "reflection", {"notes": "steady day", "wins": "shipped"}
        )

        assert done.status == ReviewStatus.COMPLETED
        assert done.completed_steps == DAILY_STEPS
        assert done.completed_at == clock()
        assert done.notes == "steady day"
        assert done.insights.tasks_completed == 1
        assert done.insights.streak_days == 1

        review = await review_repo.get_by_session(session.id)
        assert review.type == ReviewType.DAILY
        assert review.duration_minutes == 12
        assert review.notes == "steady day"
        assert review.progress.completed_steps == DAILY_STEPS

        metrics = await review_repo.list_metrics(USER_ID, date(2026, 3, 11))
        assert metrics[0].daily_reviews_completed == 1
        assert metrics[0].weekly_reviews_completed == 0

    @pytest.mark.asyncio
    async def test_weekly_review_records_counts(self, workflow, review_repo):
        session = await workflow.start(USER_ID, ReviewType.WEEKLY)
        session = await workflow.complete_step(session.id, "welcome")
        session = await workflow.complete_step(
            session.id, "inbox_process", {"processedItems": ["t1", "t2"]}
        )
        session = await workflow.complete_step(
            session.id, "project_review", {"reviewedProjects": ["p1"]}
        )
        session = await walk_to(workflow, session, 7)
        await workflow.complete_step(session.id, "reflection", {"reflectionNotes": "good"})

        review = await review_repo.get_by_session(session.id)
        assert review.tasks_reviewed == 2
        assert review.projects_reviewed == 1
        assert review.notes == "good"

        metrics = await review_repo.list_metrics(USER_ID, date(2026, 3, 11))
        assert metrics[0].weekly_reviews_completed == 1
        assert metrics[0].inbox_items_processed == 2

    @pytest.mark.asyncio
    async def test_complete_may_skip_reflection(self, workflow, review_repo):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        session = await walk_to(workflow, session, 5)

        done = await workflow.complete(session.id, notes="quick one")

        assert done.status == ReviewStatus.COMPLETED
        assert "reflection" not in done.completed_steps
        assert done.notes == "quick one"
        assert (await review_repo.get_by_session(session.id)) is not None

    @pytest.mark.asyncio
    async def test_complete_before_last_step_rejected(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        session = await walk_to(workflow, session, 3)

        with pytest.raises(StepOrderError):
            await workflow.complete(session.id)

    @pytest.mark.asyncio
    async def test_completed_session_is_terminal(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        session = await walk_to(workflow, session, 5)
        await workflow.complete(session.id)

        with pytest.raises(InvalidTransitionError):
            await workflow.complete_step(session.id, "reflection")
        with pytest.raises(InvalidTransitionError):
            await workflow.pause(session.id)
        with pytest.raises(InvalidTransitionError):
            await workflow.abandon(session.id)
        with pytest.raises(InvalidTransitionError):
            await workflow.complete(session.id)


class TestNavigationAndLifecycle:
    @pytest.mark.asyncio
    async def test_previous_step_keeps_completed(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        session = await walk_to(workflow, session, 2)

        back = await workflow.previous_step(session.id)

        assert back.current_step == 1
        assert back.completed_steps == ["welcome", "calendar_check"]

        forward = await workflow.complete_step(session.id, "calendar_check")
        assert forward.current_step == 2
        assert forward.completed_steps == ["welcome", "calendar_check"]

    @pytest.mark.asyncio
    async def test_previous_step_at_start_rejected(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)

        with pytest.raises(StepOrderError):
            await workflow.previous_step(session.id)

    @pytest.mark.asyncio
    async def test_resume_requires_paused(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)

        with pytest.raises(InvalidTransitionError):
            await workflow.resume(session.id)

    @pytest.mark.asyncio
    async def test_paused_and_started_reviews_hold_no_locks(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.WEEKLY)
        await workflow.complete_step(session.id, "welcome")
        await workflow.pause(session.id)

        assert workflow.locks._session_locks == {}
        assert workflow.locks._start_locks == {}

    @pytest.mark.asyncio
    async def test_transitions_log_with_review_context(self, workflow, session_repo):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        seen = []
        save = session_repo.save

        async def recording_save(*args, **kwargs):
            seen.append(structlog.contextvars.get_contextvars())
            return await save(*args, **kwargs)

        with patch.object(workflow.session_repo, "save", recording_save):
            await workflow.complete_step(session.id, "welcome")
            await workflow.pause(session.id)

        assert [ctx["session_id"] for ctx in seen] == [session.id, session.id]
        assert "session_id" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_pause_twice_rejected(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        await workflow.pause(session.id)

        with pytest.raises(InvalidTransitionError):
            await workflow.pause(session.id)

    @pytest.mark.asyncio
    async def test_abandon_paused_session(self, workflow):
        session = await workflow.start(USER_ID, ReviewType.DAILY)
        await workflow.pause(session.id)

        abandoned = await workflow.abandon(session.id)

        assert abandoned.status == ReviewStatus.ABANDONED
        assert await workflow.get_live_session(USER_ID, ReviewType.DAILY) is None
        with pytest.raises(InvalidTransitionError):
            await workflow.resume(session.id)


class TestTaskActions:
    @pytest.mark.asyncio
    async def test_action_returns_fresh_view(self, workflow, make_task):
        await make_task("inbox", TaskStatus.CAPTURED, task_id="t1")
        session = await workflow.start(USER_ID, ReviewType.WEEKLY)

        view = await workflow.apply_task_action(
            session.id, "t1", TaskAction.CONVERT_TO_NEXT_ACTION
        )

        assert view.inbox_items == []

    @pytest.mark.asyncio
    async def test_action_does_not_touch_session(self, workflow, make_task, session_repo):
        await make_task("inbox", TaskStatus.CAPTURED, task_id="t1")
        session = await workflow.start(USER_ID, ReviewType.WEEKLY)

        await workflow.apply_task_action(session.id, "t1", TaskAction.COMPLETE)

        assert (await session_repo.get(session.id)).version == session.version

    @pytest.mark.asyncio
    async def test_action_on_ended_review_rejected(self, workflow, make_task):
        await make_task("inbox", TaskStatus.CAPTURED, task_id="t1")
        session = await workflow.start(USER_ID, ReviewType.WEEKLY)
        await workflow.abandon(session.id)

        with pytest.raises(InvalidTransitionError):
            await workflow.apply_task_action(session.id, "t1", TaskAction.COMPLETE)


@pytest.mark.asyncio
async def test_world_view_for_session(workflow, make_task):
    await make_task("inbox", TaskStatus.CAPTURED)
    session = await workflow.start(USER_ID, ReviewType.WEEKLY)

    view = await workflow.get_world_view(session.id)

    assert view.review_type == ReviewType.WEEKLY
    assert len(view.inbox_items) == 1
