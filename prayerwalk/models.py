"""SQLAlchemy ORM models"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

SESSION_ACTIVE = "active"
SESSION_COMPLETED = "completed"
SESSION_ABANDONED = "abandoned"


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid.uuid4())


class PrayerLocation(Base):
    """Target location a walk can be headed to"""

    __tablename__ = "prayer_locations"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    radius_meters = Column(Float, default=50.0)
    points = Column(Integer, default=10)
    category = Column(String)
    is_active = Column(Boolean, default=True)


class PrayerSession(Base):
    """One prayer walk, active until completed or abandoned"""

    __tablename__ = "prayer_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String, nullable=False)
    location_id = Column(String(36), ForeignKey("prayer_locations.id", ondelete="SET NULL"))
    status = Column(String, nullable=False, default=SESSION_ACTIVE)
    trust_score = Column(Integer, nullable=False, default=100)
    start_latitude = Column(Float, nullable=False)
    start_longitude = Column(Float, nullable=False)
    current_latitude = Column(Float)
    current_longitude = Column(Float)
    distance_traveled = Column(Float, nullable=False, default=0.0)
    start_time = Column(DateTime(timezone=True), default=utcnow)
    end_time = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_sessions_user_status", "user_id", "status"),
        # At most one active walk per user
        Index(
            "uq_sessions_one_active_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )


class RouteCheckpoint(Base):
    """Interpolated waypoint between a session's start and its target"""

    __tablename__ = "route_checkpoints"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        String(36), ForeignKey("prayer_sessions.id", ondelete="CASCADE"), nullable=False
    )
    order = Column(Integer, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    is_reached = Column(Boolean, nullable=False, default=False)
    reached_at = Column(DateTime(timezone=True))

    __table_args__ = (UniqueConstraint("session_id", "order", name="uq_checkpoint_order"),)


class GPSEvent(Base):
    """Accepted GPS sample, append-only"""

    __tablename__ = "gps_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        String(36), ForeignKey("prayer_sessions.id", ondelete="CASCADE"), nullable=False
    )
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    speed = Column(Float)
    accuracy = Column(Float)
    altitude = Column(Float)
    is_mock = Column(Boolean, nullable=False, default=False)
    timestamp = Column(Float, nullable=False)

    __table_args__ = (Index("idx_gps_events_session_ts", "session_id", "timestamp"),)


class GPSFlag(Base):
    """Integrity anomaly recorded against a session"""

    __tablename__ = "gps_flags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        String(36), ForeignKey("prayer_sessions.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String, nullable=False)
    flag_type = Column(String, nullable=False)
    severity = Column(String, nullable=False)
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_flags_session", "session_id"),
        Index("idx_flags_type", "flag_type"),
    )


class Completion(Base):
    """Scored, successfully finished walk"""

    __tablename__ = "completions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    location_id = Column(String(36), ForeignKey("prayer_locations.id", ondelete="CASCADE"))
    session_id = Column(String(36), ForeignKey("prayer_sessions.id", ondelete="SET NULL"))
    latitude = Column(Float)
    longitude = Column(Float)
    points_earned = Column(Integer, nullable=False, default=0)
    trust_score = Column(Integer)
    completed_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        # NULL location ids (open walks) never collide
        UniqueConstraint("user_id", "location_id", name="uq_completion_user_location"),
        Index("idx_completions_user", "user_id"),
    )


class Badge(Base):
    """Milestone awarded to a user, never revoked"""

    __tablename__ = "badges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    badge_type = Column(String, nullable=False)
    badge_name = Column(String, nullable=False)
    description = Column(Text)
    icon = Column(String)
    milestone_value = Column(Integer)
    earned_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (UniqueConstraint("user_id", "badge_type", name="uq_badge_user_type"),)
