"""Tests for review session repository."""

import uuid
from datetime import datetime, timezone
from typing import Optional

import pytest

from gtd_review.core.exceptions import ConcurrencyConflictError
from gtd_review.domain.models.review import (
    Review,
    ReviewInsights,
    ReviewProgress,
    ReviewSession,
    ReviewStatus,
    ReviewType,
)
from gtd_review.persistence.repositories.review_repo import ReviewRepository
from gtd_review.persistence.repositories.review_session_repo import (
    LiveSessionExistsError,
    ReviewSessionRepository,
)

NOW = datetime(2026, 3, 11, 10, 0, tzinfo=timezone.utc)


def create_test_session(
    session_id: Optional[str] = None,
    user_id: str = "user-1",
    review_type: ReviewType = ReviewType.WEEKLY,
    status: ReviewStatus = ReviewStatus.ACTIVE,
) -> ReviewSession:
    """Helper to create test sessions."""
    step_ids = (
        ["welcome", "calendar_check", "task_triage", "waiting_for_review", "planning", "reflection"]
        if review_type == ReviewType.DAILY
        else [
            "welcome",
            "inbox_process",
            "project_review",
            "calendar_check",
            "waiting_for_review",
            "someday_review",
            "planning",
            "reflection",
        ]
    )
    return ReviewSession(
        id=session_id or str(uuid.uuid4()),
        user_id=user_id,
        type=review_type,
        status=status,
        total_steps=len(step_ids),
        step_ids=step_ids,
        started_at=NOW,
    )


@pytest.mark.asyncio
async def test_create_session(session_repo):
    session = create_test_session(session_id="review-1")

    created = await session_repo.create(session)

    assert created.id == "review-1"
    assert created.status == ReviewStatus.ACTIVE
    assert created.current_step == 0
    assert created.total_steps == 8
    assert created.step_ids[1] == "inbox_process"
    assert created.completed_steps == []
    assert created.session_data == {}
    assert created.version == 1
    assert created.started_at == NOW
    assert created.created_at is not None


@pytest.mark.asyncio
async def test_get_missing_session_returns_none(session_repo):
    assert await session_repo.get("nope") is None


@pytest.mark.asyncio
async def test_second_live_session_rejected(session_repo):
    await session_repo.create(create_test_session())

    with pytest.raises(LiveSessionExistsError):
        await session_repo.create(create_test_session())


@pytest.mark.asyncio
async def test_live_session_per_type(session_repo):
    """A daily and a weekly review can be live at the same time."""
    await session_repo.create(create_test_session(review_type=ReviewType.WEEKLY))
    await session_repo.create(create_test_session(review_type=ReviewType.DAILY))

    assert await session_repo.find_live("user-1", ReviewType.DAILY) is not None
    assert await session_repo.find_live("user-1", ReviewType.WEEKLY) is not None


@pytest.mark.asyncio
async def test_save_bumps_version_and_persists_state(session_repo):
    created = await session_repo.create(create_test_session())

    updated = created.model_copy(deep=True)
    updated.current_step = 1
    updated.completed_steps.append("welcome")
    updated.session_data["welcome"] = {"seen": True}
    saved = await session_repo.save(updated, expected_version=1)

    assert saved.version == 2
    assert saved.current_step == 1
    assert saved.completed_steps == ["welcome"]
    assert saved.session_data == {"welcome": {"seen": True}}

    reloaded = await session_repo.get(created.id)
    assert reloaded == saved


@pytest.mark.asyncio
async def test_save_with_stale_version_conflicts(session_repo):
    created = await session_repo.create(create_test_session())
    first = created.model_copy(update={"current_step": 1})
    await session_repo.save(first, expected_version=1)

    stale = created.model_copy(update={"current_step": 2})
    with pytest.raises(ConcurrencyConflictError):
        await session_repo.save(stale, expected_version=1)

    reloaded = await session_repo.get(created.id)
    assert reloaded.current_step == 1


@pytest.mark.asyncio
async def test_paused_session_is_live(session_repo):
    created = await session_repo.create(create_test_session())
    paused = created.model_copy(update={"status": ReviewStatus.PAUSED, "paused_at": NOW})
    await session_repo.save(paused, expected_version=1)

    live = await session_repo.find_live("user-1", ReviewType.WEEKLY)

    assert live.id == created.id
    assert live.status == ReviewStatus.PAUSED
    assert live.paused_at == NOW


@pytest.mark.asyncio
async def test_abandoned_session_not_live(session_repo):
    created = await session_repo.create(create_test_session())
    await session_repo.save(
        created.model_copy(update={"status": ReviewStatus.ABANDONED}), expected_version=1
    )

    assert await session_repo.find_live("user-1", ReviewType.WEEKLY) is None
    # A new live session is allowed again
    await session_repo.create(create_test_session())


@pytest.mark.asyncio
async def test_complete_writes_review_and_metrics(session_repo, test_db):
    created = await session_repo.create(create_test_session(review_type=ReviewType.DAILY))
    finished = created.model_copy(
        update={
            "status": ReviewStatus.COMPLETED,
            "current_step": 5,
            "completed_at": NOW,
            "notes": "good day",
            "insights": ReviewInsights(tasks_completed=3, streak_days=1),
        }
    )
    review = Review(
        id="rec-1",
        user_id="user-1",
        type=ReviewType.DAILY,
        session_id=created.id,
        completed_at=NOW,
        notes="good day",
        duration_minutes=7,
        tasks_reviewed=4,
        progress=ReviewProgress(
            current_step=5, total_steps=6, completed_steps=[], started_at=NOW
        ),
    )

    saved = await session_repo.complete(finished, 1, review, inbox_items_processed=2)

    assert saved.status == ReviewStatus.COMPLETED
    assert saved.insights.tasks_completed == 3
    assert saved.version == 2

    review_repo = ReviewRepository(str(test_db))
    stored = await review_repo.get_by_session(created.id)
    assert stored.notes == "good day"
    assert stored.duration_minutes == 7
    assert stored.progress.total_steps == 6

    metrics = await review_repo.list_metrics("user-1", since=NOW.date())
    assert len(metrics) == 1
    assert metrics[0].daily_reviews_completed == 1
    assert metrics[0].weekly_reviews_completed == 0
    assert metrics[0].inbox_items_processed == 2


@pytest.mark.asyncio
async def test_complete_with_stale_version_writes_nothing(session_repo, test_db):
    created = await session_repo.create(create_test_session(review_type=ReviewType.DAILY))
    await session_repo.save(created.model_copy(update={"current_step": 1}), 1)

    review = Review(
        id="rec-1",
        user_id="user-1",
        type=ReviewType.DAILY,
        session_id=created.id,
        completed_at=NOW,
        progress=ReviewProgress(
            current_step=5, total_steps=6, completed_steps=[], started_at=NOW
        ),
    )
    finished = created.model_copy(
        update={"status": ReviewStatus.COMPLETED, "completed_at": NOW}
    )

    with pytest.raises(ConcurrencyConflictError):
        await session_repo.complete(finished, 1, review)

    review_repo = ReviewRepository(str(test_db))
    assert await review_repo.get_by_session(created.id) is None
    assert await review_repo.list_metrics("user-1", since=NOW.date()) == []


@pytest.mark.asyncio
async def test_find_completed_since(session_repo):
    created = await session_repo.create(create_test_session(review_type=ReviewType.DAILY))
    await session_repo.save(
        created.model_copy(
            update={"status": ReviewStatus.COMPLETED, "completed_at": NOW}
        ),
        1,
    )

    found = await session_repo.find_completed_since(
        "user-1", ReviewType.DAILY, datetime(2026, 3, 11, tzinfo=timezone.utc)
    )
    assert found.id == created.id

    assert (
        await session_repo.find_completed_since(
            "user-1", ReviewType.DAILY, datetime(2026, 3, 12, tzinfo=timezone.utc)
        )
        is None
    )


@pytest.mark.asyncio
async def test_list_for_user_filters_by_type(session_repo):
    await session_repo.create(create_test_session(review_type=ReviewType.DAILY))
    await session_repo.create(create_test_session(review_type=ReviewType.WEEKLY))
    await session_repo.create(create_test_session(user_id="someone-else"))

    assert len(await session_repo.list_for_user("user-1")) == 2
    daily = await session_repo.list_for_user("user-1", ReviewType.DAILY)
    assert [s.type for s in daily] == [ReviewType.DAILY]


@pytest.mark.asyncio
async def test_delete_session(test_db):
    repo = ReviewSessionRepository(str(test_db))
    created = await repo.create(create_test_session())

    assert await repo.delete(created.id) is True
    assert await repo.delete(created.id) is False
    assert await repo.get(created.id) is None
