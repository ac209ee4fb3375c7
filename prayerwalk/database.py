"""Database module using SQLAlchemy ORM"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, AsyncIterator

from sqlalchemy import event, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .models import (
    Badge,
    Base,
    Completion,
    GPSEvent,
    GPSFlag,
    PrayerLocation,
    PrayerSession,
    RouteCheckpoint,
    utcnow,
)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes, everything is stored in UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Database handler using SQLAlchemy ORM - supports SQLite and PostgreSQL"""

    def __init__(self, database_url: str):
        self.database_url = database_url

        # Configure engine options based on database type
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}

        self.engine = create_async_engine(
            database_url,
            echo=False,
            connect_args=connect_args,
        )
        if database_url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.async_session = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init_db(self):
        """Initialize database schema"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["WalkStore"]:
        """One unit of work: commits on success, rolls back on any error"""
        async with self.async_session() as session:
            async with session.begin():
                yield WalkStore(session)

    async def get_flag_stats(self) -> dict[str, Any]:
        """Get audit statistics for the admin review"""
        async with self.async_session() as session:
            stmt = select(
                func.count().filter(PrayerSession.status == "active").label("active"),
                func.count().filter(PrayerSession.status == "completed").label("completed"),
                func.count().filter(PrayerSession.status == "abandoned").label("abandoned"),
            ).select_from(PrayerSession)
            row = (await session.execute(stmt)).one()

            flag_stmt = select(GPSFlag.flag_type, func.count()).group_by(GPSFlag.flag_type)
            flag_rows = (await session.execute(flag_stmt)).all()
            flags_by_type = {flag_type: count for flag_type, count in flag_rows}

            return {
                "active_sessions": row.active or 0,
                "completed_sessions": row.completed or 0,
                "abandoned_sessions": row.abandoned or 0,
                "flags_by_type": flags_by_type,
                "total_flags": sum(flags_by_type.values()),
            }

    async def get_flags(
        self,
        session_id: str | None = None,
        flag_type: str | None = None,
        sort_dir: str = "desc",
    ) -> list[dict[str, Any]]:
        """Get integrity flags, optionally filtered by session and type"""
        async with self.async_session() as session:
            stmt = select(GPSFlag)
            if session_id:
                stmt = stmt.where(GPSFlag.session_id == session_id)
            if flag_type and flag_type != "all":
                stmt = stmt.where(GPSFlag.flag_type == flag_type)

            if sort_dir == "asc":
                stmt = stmt.order_by(GPSFlag.created_at.asc(), GPSFlag.id.asc())
            else:
                stmt = stmt.order_by(GPSFlag.created_at.desc(), GPSFlag.id.desc())

            result = await session.execute(stmt)
            return [
                {
                    "id": flag.id,
                    "session_id": flag.session_id,
                    "user_id": flag.user_id,
                    "flag_type": flag.flag_type,
                    "severity": flag.severity,
                    "description": flag.description,
                    "created_at": as_utc(flag.created_at).isoformat(),
                }
                for flag in result.scalars().all()
            ]

    async def close(self):
        """Close database connection"""
        await self.engine.dispose()


class WalkStore:
    """Session store operations bound to one open transaction"""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Locations

    async def add_location(self, **values: Any) -> PrayerLocation:
        location = PrayerLocation(**values)
        self.session.add(location)
        await self.session.flush()
        return location

    async def get_location(self, location_id: str) -> PrayerLocation | None:
        return await self.session.get(PrayerLocation, location_id)

    # Sessions

    async def get_session(self, session_id: str, for_update: bool = False) -> PrayerSession | None:
        stmt = select(PrayerSession).where(PrayerSession.id == session_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_session(self, user_id: str) -> PrayerSession | None:
        stmt = select(PrayerSession).where(
            PrayerSession.user_id == user_id, PrayerSession.status == "active"
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create_session(
        self, prayer_session: PrayerSession, checkpoints: list[RouteCheckpoint]
    ) -> PrayerSession:
        """Insert a session together with its whole checkpoint batch"""
        self.session.add(prayer_session)
        await self.session.flush()
        for checkpoint in checkpoints:
            checkpoint.session_id = prayer_session.id
        self.session.add_all(checkpoints)
        await self.session.flush()
        return prayer_session

    async def transition_status(
        self, session_id: str, from_status: str, to_status: str, **values: Any
    ) -> bool:
        """Compare-and-set a session status. Returns False if the session was not in from_status"""
        stmt = (
            update(PrayerSession)
            .where(PrayerSession.id == session_id, PrayerSession.status == from_status)
            .values(status=to_status, **values)
            .execution_options(synchronize_session="evaluate")
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    # GPS samples

    async def get_last_event(self, session_id: str) -> GPSEvent | None:
        stmt = (
            select(GPSEvent)
            .where(GPSEvent.session_id == session_id)
            .order_by(GPSEvent.timestamp.desc(), GPSEvent.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def flush(self):
        await self.session.flush()

    async def add_event(self, gps_event: GPSEvent) -> GPSEvent:
        self.session.add(gps_event)
        await self.session.flush()
        return gps_event

    async def count_events(self, session_id: str) -> int:
        stmt = select(func.count()).select_from(GPSEvent).where(GPSEvent.session_id == session_id)
        return (await self.session.execute(stmt)).scalar_one()

    # Flags

    async def add_flag(
        self, session_id: str, user_id: str, flag_type: str, severity: str, description: str
    ) -> GPSFlag:
        flag = GPSFlag(
            session_id=session_id,
            user_id=user_id,
            flag_type=flag_type,
            severity=severity,
            description=description,
        )
        self.session.add(flag)
        await self.session.flush()
        return flag

    async def count_flags(self, session_id: str) -> int:
        stmt = select(func.count()).select_from(GPSFlag).where(GPSFlag.session_id == session_id)
        return (await self.session.execute(stmt)).scalar_one()

    async def has_flag(self, session_id: str, flag_type: str) -> bool:
        stmt = (
            select(GPSFlag.id)
            .where(GPSFlag.session_id == session_id, GPSFlag.flag_type == flag_type)
            .limit(1)
        )
        return (await self.session.execute(stmt)).first() is not None

    # Checkpoints

    async def get_checkpoints(self, session_id: str) -> list[RouteCheckpoint]:
        stmt = (
            select(RouteCheckpoint)
            .where(RouteCheckpoint.session_id == session_id)
            .order_by(RouteCheckpoint.order.asc())
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_next_checkpoint(self, session_id: str) -> RouteCheckpoint | None:
        """Lowest-order checkpoint not reached yet"""
        stmt = (
            select(RouteCheckpoint)
            .where(RouteCheckpoint.session_id == session_id, RouteCheckpoint.is_reached.is_(False))
            .order_by(RouteCheckpoint.order.asc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def checkpoint_counts(self, session_id: str) -> tuple[int, int]:
        """Returns (total, reached)"""
        stmt = select(
            func.count().label("total"),
            func.count().filter(RouteCheckpoint.is_reached.is_(True)).label("reached"),
        ).where(RouteCheckpoint.session_id == session_id)
        row = (await self.session.execute(stmt)).one()
        return row.total or 0, row.reached or 0

    async def mark_checkpoint_reached(self, checkpoint: RouteCheckpoint, reached_at: datetime):
        checkpoint.is_reached = True
        checkpoint.reached_at = reached_at
        await self.session.flush()

    # Completions

    async def get_completion(self, user_id: str, location_id: str) -> Completion | None:
        stmt = select(Completion).where(
            Completion.user_id == user_id, Completion.location_id == location_id
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def upsert_completion(
        self,
        user_id: str,
        location_id: str | None,
        session_id: str,
        latitude: float,
        longitude: float,
        points_earned: int,
        trust_score: int,
    ) -> tuple[Completion, bool]:
        """Record a completion. Returns (completion, created).

        With a location the (user, location) row is updated in place if it exists.
        """
        values = {
            "session_id": session_id,
            "latitude": latitude,
            "longitude": longitude,
            "points_earned": points_earned,
            "trust_score": trust_score,
            "completed_at": utcnow(),
        }

        if location_id is not None:
            existing = await self.get_completion(user_id, location_id)
            if existing is not None:
                for key, value in values.items():
                    setattr(existing, key, value)
                await self.session.flush()
                return existing, False

        completion = Completion(user_id=user_id, location_id=location_id, **values)
        self.session.add(completion)
        await self.session.flush()
        return completion, True

    # User history

    async def count_completions(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(Completion).where(Completion.user_id == user_id)
        return (await self.session.execute(stmt)).scalar_one()

    async def total_distance(self, user_id: str) -> float:
        stmt = select(func.coalesce(func.sum(PrayerSession.distance_traveled), 0.0)).where(
            PrayerSession.user_id == user_id
        )
        return float((await self.session.execute(stmt)).scalar_one() or 0.0)

    async def count_categories(self, user_id: str) -> int:
        stmt = (
            select(func.count(func.distinct(PrayerLocation.category)))
            .select_from(Completion)
            .join(PrayerLocation, Completion.location_id == PrayerLocation.id)
            .where(Completion.user_id == user_id)
        )
        return (await self.session.execute(stmt)).scalar_one() or 0

    async def completion_times(self, user_id: str) -> list[datetime]:
        """Completion timestamps, newest first"""
        stmt = (
            select(Completion.completed_at)
            .where(Completion.user_id == user_id)
            .order_by(Completion.completed_at.desc())
        )
        return [as_utc(ts) for ts in (await self.session.execute(stmt)).scalars().all()]

    # Badges

    async def get_badge_types(self, user_id: str) -> set[str]:
        stmt = select(Badge.badge_type).where(Badge.user_id == user_id)
        return set((await self.session.execute(stmt)).scalars().all())

    async def add_badge(
        self,
        user_id: str,
        badge_type: str,
        badge_name: str,
        description: str,
        icon: str,
        milestone_value: int,
    ) -> bool:
        """Insert a badge. Returns True if new, False if the user already holds it"""
        if self.session.get_bind().dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert

        stmt = (
            insert(Badge)
            .values(
                user_id=user_id,
                badge_type=badge_type,
                badge_name=badge_name,
                description=description,
                icon=icon,
                milestone_value=milestone_value,
                earned_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["user_id", "badge_type"])
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_badges(self, user_id: str) -> list[Badge]:
        stmt = select(Badge).where(Badge.user_id == user_id).order_by(Badge.earned_at.desc())
        return list((await self.session.execute(stmt)).scalars().all())
