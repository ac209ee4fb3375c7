"""Tests for badge evaluation"""

from datetime import UTC, datetime, timedelta

import pytest

from prayerwalk.database import Database
from prayerwalk.models import PrayerSession, utcnow
from prayerwalk.services.badges import (
    BADGE_MILESTONES,
    UserHistory,
    award_badges,
    calculate_streak,
    count_early_completions,
    get_badge_progress,
    qualifying_badges,
)


@pytest.fixture
async def db():
    """Create an in-memory test database"""
    database = Database("sqlite+aiosqlite:///:memory:")
    await database.init_db()
    yield database
    await database.close()


def history(**values) -> UserHistory:
    defaults = dict(
        completion_count=0, total_distance_m=0.0, category_count=0, streak=0, early_completions=0
    )
    defaults.update(values)
    return UserHistory(**defaults)


def days_ago(*offsets, hour=12) -> list[datetime]:
    base = datetime(2024, 3, 20, hour, 0, tzinfo=UTC)
    return [base - timedelta(days=offset) for offset in offsets]


def test_streak_empty():
    assert calculate_streak([]) == 0


def test_streak_consecutive_days():
    assert calculate_streak(days_ago(0, 1, 2, 3)) == 4


def test_streak_same_day_completions_count_once():
    times = days_ago(0, 0, 1, 1, 2)
    assert calculate_streak(times) == 3


def test_streak_breaks_on_gap():
    assert calculate_streak(days_ago(0, 1, 3, 4, 5)) == 2


def test_streak_uses_timezone_days():
    """23:30 and 00:30 UTC are different UTC days but the same day in New York"""
    times = [
        datetime(2024, 3, 20, 0, 30, tzinfo=UTC),
        datetime(2024, 3, 19, 23, 30, tzinfo=UTC),
    ]
    assert calculate_streak(times, "UTC") == 2
    assert calculate_streak(times, "America/New_York") == 1


def test_count_early_completions():
    times = [
        datetime(2024, 3, 20, 7, 59, tzinfo=UTC),
        datetime(2024, 3, 20, 8, 0, tzinfo=UTC),
        datetime(2024, 3, 19, 0, 0, tzinfo=UTC),
    ]
    assert count_early_completions(times) == 2


def test_qualifying_first_completion():
    earned = qualifying_badges(history(completion_count=1), held=set())
    assert earned == [("BEGINNER", 1)]


def test_qualifying_skips_held_badges():
    earned = qualifying_badges(history(completion_count=5), held={"BEGINNER"})
    assert earned == [("PILGRIM", 5)]


def test_qualifying_records_threshold_for_counts_and_value_for_others():
    earned = dict(
        qualifying_badges(
            history(completion_count=7, total_distance_m=12345.0, category_count=6, streak=9),
            held=set(),
        )
    )

    assert earned["PILGRIM"] == 5
    assert earned["DISTANCE_WALKER"] == 10000
    assert earned["CATEGORY_EXPLORER"] == 6
    assert earned["STREAK_KEEPER"] == 9
    assert "MARATHON_PRAYER" not in earned
    assert "EARLY_BIRD" not in earned


def test_milestone_table():
    assert BADGE_MILESTONES["BEGINNER"].threshold == 1
    assert BADGE_MILESTONES["DEVOTED"].threshold == 100
    assert BADGE_MILESTONES["MARATHON_PRAYER"].threshold == 42000
    assert BADGE_MILESTONES["EARLY_BIRD"].threshold == 10


async def seed_completed_walk(db, user_id, distance=0.0, location_id=None):
    async with db.transaction() as store:
        prayer_session = PrayerSession(
            user_id=user_id,
            location_id=location_id,
            status="completed",
            start_latitude=0.0,
            start_longitude=0.0,
            distance_traveled=distance,
            start_time=utcnow(),
            end_time=utcnow(),
        )
        await store.create_session(prayer_session, [])
        await store.upsert_completion(
            user_id=user_id,
            location_id=location_id,
            session_id=prayer_session.id,
            latitude=0.0,
            longitude=0.0,
            points_earned=50,
            trust_score=100,
        )


@pytest.mark.asyncio
async def test_award_badges_once(db):
    """A badge is awarded the first time only"""
    await seed_completed_walk(db, "user-1")

    async with db.transaction() as store:
        assert await award_badges(store, "user-1") == ["Beginner"]

    async with db.transaction() as store:
        assert await award_badges(store, "user-1") == []
        badges = await store.list_badges("user-1")

    assert len(badges) == 1
    assert badges[0].badge_type == "BEGINNER"
    assert badges[0].milestone_value == 1


@pytest.mark.asyncio
async def test_add_badge_conflict_is_ignored(db):
    """Inserting a held badge reports False instead of raising"""
    values = dict(
        user_id="user-1",
        badge_type="BEGINNER",
        badge_name="Beginner",
        description="Completed your first prayer location",
        icon="🌱",
        milestone_value=1,
    )
    async with db.transaction() as store:
        assert await store.add_badge(**values) is True
        assert await store.add_badge(**values) is False
        assert await store.get_badge_types("user-1") == {"BEGINNER"}


@pytest.mark.asyncio
async def test_distance_badge(db):
    await seed_completed_walk(db, "user-1", distance=6000.0)
    await seed_completed_walk(db, "user-1", distance=4500.0)

    async with db.transaction() as store:
        awarded = await award_badges(store, "user-1")

    assert "Distance Walker" in awarded
    assert "Marathon Prayer" not in awarded


@pytest.mark.asyncio
async def test_badges_are_per_user(db):
    await seed_completed_walk(db, "user-1")

    async with db.transaction() as store:
        assert await award_badges(store, "user-2") == []
        await award_badges(store, "user-1")
        assert await store.get_badge_types("user-2") == set()


@pytest.mark.asyncio
async def test_badge_progress(db):
    await seed_completed_walk(db, "user-1", distance=1200.0)

    async with db.transaction() as store:
        progress = await get_badge_progress(store, "user-1")

    assert progress["completions"] == {"current": 1, "milestones": [1, 5, 20, 50, 100]}
    assert progress["distance"]["current"] == pytest.approx(1200.0)
    assert progress["distance"]["milestones"] == [10000, 42000]
    assert progress["categories"] == {"current": 0, "milestone": 5}
    assert progress["streak"] == {"current": 1, "milestone": 7}
    assert progress["earlyBird"]["milestone"] == 10
