"""Walk session lifecycle: start, sample ingestion, arrival, completion"""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import IntegrityError

from ..config import Settings, get_settings
from ..database import Database
from ..exceptions import (
    ActiveSessionExistsError,
    IntegrityTooLowError,
    LocationNotFoundError,
    SessionForbiddenError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from ..models import (
    SESSION_ABANDONED,
    SESSION_ACTIVE,
    SESSION_COMPLETED,
    GPSEvent,
    PrayerSession,
    RouteCheckpoint,
    utcnow,
)
from . import badges, trust
from .checkpoints import generate_checkpoints
from .completion import GateRules, score_completion
from .geo import Coordinate, distance_meters
from .gps_validator import (
    ROUTE_SKIPPED,
    SEVERITY_MEDIUM,
    GPSSample,
    ValidationRules,
    validate_sample,
)
from .locks import KeyedLocks
from .route_tracker import is_checkpoint_reached, route_integrity

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    session_id: str
    trust_score: int
    flags: list[str] = field(default_factory=list)
    checkpoint_reached: int | None = None
    route_integrity: float = 100.0


@dataclass
class ArrivalResult:
    session_id: str
    within_range: bool
    distance_m: float
    required_radius_m: float | None
    route_integrity: float
    route_skipped: bool


@dataclass
class CompletionResult:
    session_id: str
    final_score: int
    points_earned: int
    new_badges: list[str]
    completion_created: bool


def _current_position(prayer_session: PrayerSession) -> Coordinate:
    if prayer_session.current_latitude is None or prayer_session.current_longitude is None:
        return Coordinate(prayer_session.start_latitude, prayer_session.start_longitude)
    return Coordinate(prayer_session.current_latitude, prayer_session.current_longitude)


def _event_to_sample(gps_event: GPSEvent) -> GPSSample:
    return GPSSample(
        coordinate=Coordinate(gps_event.latitude, gps_event.longitude),
        timestamp=gps_event.timestamp,
        speed=gps_event.speed,
        accuracy=gps_event.accuracy,
        altitude=gps_event.altitude,
        is_mock=gps_event.is_mock,
    )


class WalkService:
    """Runs the integrity engine against the session store.

    Sample processing and completion for one session are serialized through a
    per-session lock, badge evaluation through a per-user lock.
    """

    def __init__(self, db: Database, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.validation_rules = ValidationRules.from_settings(self.settings)
        self.gate_rules = GateRules.from_settings(self.settings)
        self.session_locks = KeyedLocks()
        self.user_locks = KeyedLocks()

    @staticmethod
    def _check_session(
        prayer_session: PrayerSession | None,
        session_id: str,
        user_id: str | None,
        require_active: bool = True,
    ) -> PrayerSession:
        if prayer_session is None:
            raise SessionNotFoundError(session_id)
        if user_id is not None and prayer_session.user_id != user_id:
            raise SessionForbiddenError(session_id)
        if require_active and prayer_session.status != SESSION_ACTIVE:
            raise SessionNotActiveError(session_id, prayer_session.status)
        return prayer_session

    async def start_session(
        self, user_id: str, start: Coordinate, location_id: str | None = None
    ) -> PrayerSession:
        """Open a walk and lay out its checkpoint route in the same transaction"""
        async with self.user_locks.hold(user_id):
            try:
                async with self.db.transaction() as store:
                    if await store.get_active_session(user_id) is not None:
                        raise ActiveSessionExistsError(user_id)

                    target = None
                    if location_id:
                        location = await store.get_location(location_id)
                        if location is None or not location.is_active:
                            raise LocationNotFoundError(location_id)
                        target = Coordinate(location.latitude, location.longitude)

                    waypoints = generate_checkpoints(
                        start, target, spacing_m=self.settings.checkpoint_spacing_m
                    )
                    prayer_session = PrayerSession(
                        user_id=user_id,
                        location_id=location_id or None,
                        status=SESSION_ACTIVE,
                        trust_score=trust.MAX_TRUST_SCORE,
                        start_latitude=start.latitude,
                        start_longitude=start.longitude,
                        current_latitude=start.latitude,
                        current_longitude=start.longitude,
                        distance_traveled=0.0,
                        start_time=utcnow(),
                    )
                    checkpoints = [
                        RouteCheckpoint(
                            order=waypoint.order,
                            latitude=waypoint.coordinate.latitude,
                            longitude=waypoint.coordinate.longitude,
                        )
                        for waypoint in waypoints
                    ]
                    await store.create_session(prayer_session, checkpoints)
            except IntegrityError as e:
                # Lost a race against another start for the same user
                raise ActiveSessionExistsError(user_id) from e

        logger.info(
            f"Walk started: session={prayer_session.id} user={user_id} "
            f"target={location_id or 'open'} checkpoints={len(waypoints)}"
        )
        return prayer_session

    async def ingest_sample(
        self, session_id: str, sample: GPSSample, user_id: str | None = None
    ) -> IngestResult:
        """
        Apply one sample as a single unit:
        flag writes -> trust decrement -> checkpoint update -> sample persist.

        Anomalies never reject the sample.
        """
        async with self.session_locks.hold(session_id):
            async with self.db.transaction() as store:
                prayer_session = self._check_session(
                    await store.get_session(session_id, for_update=True), session_id, user_id
                )

                last_event = await store.get_last_event(session_id)
                prior = _event_to_sample(last_event) if last_event else None
                findings = validate_sample(sample, prior, self.validation_rules)

                for finding in findings:
                    await store.add_flag(
                        session_id=session_id,
                        user_id=prayer_session.user_id,
                        flag_type=finding.flag_type,
                        severity=finding.severity,
                        description=finding.description,
                    )
                    logger.warning(
                        f"🚩 Session {session_id}: {finding.flag_type} ({finding.description})"
                    )

                penalties = [f.penalty for f in findings if f.penalty]
                for penalty in penalties:
                    prayer_session.trust_score = trust.decrement(
                        prayer_session.trust_score, penalty
                    )
                await store.flush()

                reached_order = None
                checkpoint = await store.get_next_checkpoint(session_id)
                if checkpoint is not None and is_checkpoint_reached(
                    Coordinate(checkpoint.latitude, checkpoint.longitude),
                    sample.coordinate,
                    self.settings.checkpoint_radius_m,
                ):
                    await store.mark_checkpoint_reached(checkpoint, utcnow())
                    reached_order = checkpoint.order

                # Penalized legs (mock or teleport) don't count toward walked distance
                if not penalties:
                    origin = prior.coordinate if prior else _current_position(prayer_session)
                    prayer_session.distance_traveled = (
                        prayer_session.distance_traveled or 0.0
                    ) + distance_meters(origin, sample.coordinate)
                prayer_session.current_latitude = sample.coordinate.latitude
                prayer_session.current_longitude = sample.coordinate.longitude

                await store.add_event(
                    GPSEvent(
                        session_id=session_id,
                        latitude=sample.coordinate.latitude,
                        longitude=sample.coordinate.longitude,
                        speed=sample.speed,
                        accuracy=sample.accuracy,
                        altitude=sample.altitude,
                        is_mock=sample.is_mock,
                        timestamp=sample.timestamp,
                    )
                )

                total, reached = await store.checkpoint_counts(session_id)
                trust_score = prayer_session.trust_score

        return IngestResult(
            session_id=session_id,
            trust_score=trust_score,
            flags=[f.flag_type for f in findings],
            checkpoint_reached=reached_order,
            route_integrity=route_integrity(reached, total),
        )

    async def arrive(self, session_id: str, user_id: str, position: Coordinate) -> ArrivalResult:
        """Check arrival at the target; arriving with most of the route skipped is flagged once"""
        async with self.session_locks.hold(session_id):
            async with self.db.transaction() as store:
                prayer_session = self._check_session(
                    await store.get_session(session_id, for_update=True), session_id, user_id
                )
                total, reached = await store.checkpoint_counts(session_id)
                integrity = route_integrity(reached, total)

                location = None
                if prayer_session.location_id:
                    location = await store.get_location(prayer_session.location_id)

                within_range = True
                distance_m = 0.0
                radius_m = None
                if location is not None:
                    radius_m = location.radius_meters or self.settings.checkpoint_radius_m
                    distance_m = distance_meters(
                        position, Coordinate(location.latitude, location.longitude)
                    )
                    within_range = distance_m <= radius_m

                route_skipped = False
                if (
                    location is not None
                    and within_range
                    and integrity < self.settings.route_skip_threshold
                    and not await store.has_flag(session_id, ROUTE_SKIPPED)
                ):
                    await store.add_flag(
                        session_id=session_id,
                        user_id=prayer_session.user_id,
                        flag_type=ROUTE_SKIPPED,
                        severity=SEVERITY_MEDIUM,
                        description=(
                            f"reached target but only {round(integrity)}% "
                            "of checkpoints reached"
                        ),
                    )
                    route_skipped = True
                    logger.warning(f"🚩 Session {session_id}: route_skipped ({integrity:.0f}%)")

        return ArrivalResult(
            session_id=session_id,
            within_range=within_range,
            distance_m=distance_m,
            required_radius_m=radius_m,
            route_integrity=integrity,
            route_skipped=route_skipped,
        )

    async def complete_session(
        self, session_id: str, user_id: str | None, final: Coordinate
    ) -> CompletionResult:
        """
        Score the walk and, if it passes, mark it completed and issue rewards.

        Raises:
            IntegrityTooLowError: final score under the threshold, session stays active
        """
        async with self.session_locks.hold(session_id):
            async with self.db.transaction() as store:
                prayer_session = self._check_session(
                    await store.get_session(session_id, for_update=True), session_id, user_id
                )
                owner_id = prayer_session.user_id

                total, reached = await store.checkpoint_counts(session_id)
                flag_count = await store.count_flags(session_id)
                breakdown = score_completion(
                    prayer_session.trust_score,
                    total_checkpoints=total,
                    unreached_checkpoints=total - reached,
                    flag_count=flag_count,
                    rules=self.gate_rules,
                )

                if not breakdown.passed:
                    logger.warning(
                        f"⛔ Completion refused: session={session_id} score={breakdown.final_score} "
                        f"(trust={breakdown.trust_score} checkpoints=-{breakdown.checkpoint_penalty} "
                        f"flags=-{breakdown.flag_penalty})"
                    )
                    raise IntegrityTooLowError(breakdown.final_score)

                location = None
                if prayer_session.location_id:
                    location = await store.get_location(prayer_session.location_id)
                if location is not None:
                    points_earned = location.points if location.points is not None else 0
                else:
                    points_earned = self.settings.open_walk_points

                distance = (prayer_session.distance_traveled or 0.0) + distance_meters(
                    _current_position(prayer_session), final
                )
                transitioned = await store.transition_status(
                    session_id,
                    SESSION_ACTIVE,
                    SESSION_COMPLETED,
                    end_time=utcnow(),
                    trust_score=breakdown.final_score,
                    distance_traveled=distance,
                    current_latitude=final.latitude,
                    current_longitude=final.longitude,
                )
                if not transitioned:
                    raise SessionNotActiveError(session_id, SESSION_COMPLETED)

                _, created = await store.upsert_completion(
                    user_id=owner_id,
                    location_id=location.id if location is not None else None,
                    session_id=session_id,
                    latitude=final.latitude,
                    longitude=final.longitude,
                    points_earned=points_earned,
                    trust_score=breakdown.final_score,
                )

                async with self.user_locks.hold(owner_id):
                    new_badges = await badges.award_badges(
                        store, owner_id, self.settings.streak_timezone
                    )

        logger.info(
            f"✅ Walk completed: session={session_id} score={breakdown.final_score} "
            f"points={points_earned} badges={len(new_badges)}"
        )
        return CompletionResult(
            session_id=session_id,
            final_score=breakdown.final_score,
            points_earned=points_earned,
            new_badges=new_badges,
            completion_created=created,
        )

    async def abandon_session(self, session_id: str, user_id: str | None) -> None:
        async with self.session_locks.hold(session_id):
            async with self.db.transaction() as store:
                self._check_session(await store.get_session(session_id), session_id, user_id)
                if not await store.transition_status(
                    session_id, SESSION_ACTIVE, SESSION_ABANDONED, end_time=utcnow()
                ):
                    raise SessionNotActiveError(session_id, SESSION_ABANDONED)
        logger.info(f"Walk abandoned: session={session_id}")

    async def get_progress(self, session_id: str, user_id: str | None) -> dict[str, Any]:
        async with self.db.transaction() as store:
            prayer_session = self._check_session(
                await store.get_session(session_id), session_id, user_id, require_active=False
            )
            total, reached = await store.checkpoint_counts(session_id)
            return {
                "sessionId": session_id,
                "status": prayer_session.status,
                "trustScore": prayer_session.trust_score,
                "checkpointsReached": reached,
                "checkpointsTotal": total,
                "routeIntegrity": route_integrity(reached, total),
                "flagCount": await store.count_flags(session_id),
                "sampleCount": await store.count_events(session_id),
                "distanceTraveled": prayer_session.distance_traveled,
            }

    async def evaluate_badges(self, user_id: str) -> list[str]:
        """Re-run badge evaluation outside a completion"""
        async with self.user_locks.hold(user_id):
            async with self.db.transaction() as store:
                return await badges.award_badges(store, user_id, self.settings.streak_timezone)

    async def get_user_badges(self, user_id: str) -> list[dict[str, Any]]:
        async with self.db.transaction() as store:
            return [
                {
                    "badgeType": badge.badge_type,
                    "name": badge.badge_name,
                    "description": badge.description,
                    "icon": badge.icon,
                    "milestoneValue": badge.milestone_value,
                    "earnedAt": badge.earned_at.isoformat() if badge.earned_at else None,
                }
                for badge in await store.list_badges(user_id)
            ]

    async def get_badge_progress(self, user_id: str) -> dict[str, Any]:
        async with self.db.transaction() as store:
            return await badges.get_badge_progress(store, user_id, self.settings.streak_timezone)

