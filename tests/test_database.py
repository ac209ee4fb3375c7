"""Tests for database operations"""

import pytest
from sqlalchemy.exc import IntegrityError

from prayerwalk.database import Database
from prayerwalk.models import GPSEvent, PrayerSession, RouteCheckpoint, utcnow


@pytest.fixture
async def db():
    """Create test database"""
    database = Database("sqlite+aiosqlite:///:memory:")
    await database.init_db()
    yield database
    await database.close()


def new_session(user_id="user-1", status="active", location_id=None) -> PrayerSession:
    return PrayerSession(
        user_id=user_id,
        location_id=location_id,
        status=status,
        start_latitude=0.0,
        start_longitude=0.0,
        start_time=utcnow(),
    )


@pytest.mark.asyncio
async def test_create_session_with_checkpoints(db):
    """Test a session and its checkpoint batch land together"""
    checkpoints = [RouteCheckpoint(order=i, latitude=0.001 * i, longitude=0.0) for i in (1, 2, 3)]

    async with db.transaction() as store:
        prayer_session = await store.create_session(new_session(), checkpoints)

    async with db.transaction() as store:
        loaded = await store.get_session(prayer_session.id)
        assert loaded.status == "active"
        assert loaded.trust_score == 100
        assert await store.checkpoint_counts(prayer_session.id) == (3, 0)

        next_cp = await store.get_next_checkpoint(prayer_session.id)
        assert next_cp.order == 1
        await store.mark_checkpoint_reached(next_cp, utcnow())

        assert (await store.get_next_checkpoint(prayer_session.id)).order == 2
        assert await store.checkpoint_counts(prayer_session.id) == (3, 1)


@pytest.mark.asyncio
async def test_failed_transaction_rolls_back(db):
    """Nothing from a failed unit of work is kept"""
    with pytest.raises(RuntimeError):
        async with db.transaction() as store:
            prayer_session = await store.create_session(new_session(), [])
            session_id = prayer_session.id
            raise RuntimeError("boom")

    async with db.transaction() as store:
        assert await store.get_session(session_id) is None


@pytest.mark.asyncio
async def test_one_active_session_per_user(db):
    """A second active session for the same user violates the partial index"""
    async with db.transaction() as store:
        await store.create_session(new_session(), [])

    with pytest.raises(IntegrityError):
        async with db.transaction() as store:
            await store.create_session(new_session(), [])

    # Finished sessions and other users are unaffected
    async with db.transaction() as store:
        await store.create_session(new_session(status="completed"), [])
        await store.create_session(new_session(status="abandoned"), [])
        await store.create_session(new_session(user_id="user-2"), [])


@pytest.mark.asyncio
async def test_transition_status_compare_and_set(db):
    """Only the first transition out of active succeeds"""
    async with db.transaction() as store:
        prayer_session = await store.create_session(new_session(), [])

    async with db.transaction() as store:
        assert await store.transition_status(
            prayer_session.id, "active", "completed", end_time=utcnow()
        )

    async with db.transaction() as store:
        assert not await store.transition_status(prayer_session.id, "active", "abandoned")
        loaded = await store.get_session(prayer_session.id)
        assert loaded.status == "completed"
        assert loaded.end_time is not None


@pytest.mark.asyncio
async def test_last_event_and_flags(db):
    """Test sample and flag bookkeeping"""
    async with db.transaction() as store:
        prayer_session = await store.create_session(new_session(), [])
        session_id = prayer_session.id

        assert await store.get_last_event(session_id) is None
        for ts in (1000.0, 1010.0, 1005.0):
            await store.add_event(
                GPSEvent(session_id=session_id, latitude=0.0, longitude=0.0, timestamp=ts)
            )

        assert (await store.get_last_event(session_id)).timestamp == 1010.0
        assert await store.count_events(session_id) == 3

        await store.add_flag(session_id, "user-1", "mock_gps", "high", "mock")
        await store.add_flag(session_id, "user-1", "teleport", "high", "jump")
        assert await store.count_flags(session_id) == 2
        assert await store.has_flag(session_id, "teleport")
        assert not await store.has_flag(session_id, "route_skipped")


@pytest.mark.asyncio
async def test_upsert_completion(db):
    """Repeat completions of a location update the row, open walks always insert"""
    async with db.transaction() as store:
        location = await store.add_location(name="Town Hall", latitude=0.001, longitude=0.0)
        first = await store.create_session(new_session(status="completed"), [])
        second = await store.create_session(new_session(status="completed"), [])

    async with db.transaction() as store:
        _, created = await store.upsert_completion(
            "user-1", location.id, first.id, 0.001, 0.0, points_earned=10, trust_score=90
        )
        assert created is True

        completion, created = await store.upsert_completion(
            "user-1", location.id, second.id, 0.001, 0.0, points_earned=10, trust_score=70
        )
        assert created is False
        assert completion.session_id == second.id
        assert completion.trust_score == 70

        for session in (first, second):
            _, created = await store.upsert_completion(
                "user-1", None, session.id, 0.0, 0.0, points_earned=50, trust_score=100
            )
            assert created is True

        assert await store.count_completions("user-1") == 3


@pytest.mark.asyncio
async def test_user_history_queries(db):
    """Test distance, category and completion time aggregates"""
    async with db.transaction() as store:
        church = await store.add_location(
            name="Church", latitude=0.0, longitude=0.0, category="church"
        )
        school = await store.add_location(
            name="School", latitude=0.0, longitude=0.0, category="school"
        )
        park = await store.add_location(name="Park", latitude=0.0, longitude=0.0, category="school")

        for location, distance in ((church, 1000.0), (school, 2500.0), (park, 500.0)):
            prayer_session = new_session(status="completed", location_id=location.id)
            prayer_session.distance_traveled = distance
            await store.create_session(prayer_session, [])
            await store.upsert_completion(
                "user-1", location.id, prayer_session.id, 0.0, 0.0, 10, 100
            )

    async with db.transaction() as store:
        assert await store.total_distance("user-1") == pytest.approx(4000.0)
        assert await store.count_categories("user-1") == 2
        times = await store.completion_times("user-1")
        assert len(times) == 3
        assert all(ts.tzinfo is not None for ts in times)
        assert times == sorted(times, reverse=True)

        assert await store.total_distance("nobody") == 0.0
        assert await store.count_categories("nobody") == 0


@pytest.mark.asyncio
async def test_get_flags_and_stats(db):
    """Test the admin review queries"""
    async with db.transaction() as store:
        active = await store.create_session(new_session(), [])
        done = await store.create_session(new_session(user_id="user-2", status="completed"), [])
        await store.add_flag(active.id, "user-1", "mock_gps", "high", "mock")
        await store.add_flag(active.id, "user-1", "teleport", "high", "jump")
        await store.add_flag(done.id, "user-2", "teleport", "high", "jump")

    flags = await db.get_flags()
    assert len(flags) == 3
    assert flags[0]["flag_type"] == "teleport"
    assert flags[0]["session_id"] == done.id

    assert len(await db.get_flags(flag_type="teleport")) == 2
    assert len(await db.get_flags(session_id=active.id)) == 2
    assert len(await db.get_flags(session_id=active.id, flag_type="mock_gps")) == 1
    assert [f["id"] for f in await db.get_flags(sort_dir="asc")] == sorted(f["id"] for f in flags)

    stats = await db.get_flag_stats()
    assert stats["active_sessions"] == 1
    assert stats["completed_sessions"] == 1
    assert stats["abandoned_sessions"] == 0
    assert stats["flags_by_type"] == {"mock_gps": 1, "teleport": 2}
    assert stats["total_flags"] == 3
