"""
Milestone badges earned from a user's completion history.
Deterministic, auditable rules. Badges are awarded once and never revoked.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import pytz

from ..database import WalkStore

logger = logging.getLogger(__name__)

COMPLETION_COUNT = "completion_count"
DISTANCE = "distance"
CATEGORY_DIVERSITY = "category_diversity"
STREAK = "streak"
TIME_BASED = "time_based"

EARLY_BIRD_CUTOFF_HOUR = 8


@dataclass(frozen=True)
class BadgeDefinition:
    family: str
    name: str
    description: str
    threshold: int
    icon: str


BADGE_MILESTONES: dict[str, BadgeDefinition] = {
    "BEGINNER": BadgeDefinition(
        COMPLETION_COUNT, "Beginner", "Completed your first prayer location", 1, "🌱"
    ),
    "PILGRIM": BadgeDefinition(COMPLETION_COUNT, "Pilgrim", "Completed 5 prayer locations", 5, "🚶"),
    "INTERCESSOR": BadgeDefinition(
        COMPLETION_COUNT, "Intercessor", "Completed 20 prayer locations", 20, "🙏"
    ),
    "PRAYER_WARRIOR": BadgeDefinition(
        COMPLETION_COUNT, "Prayer Warrior", "Completed 50 prayer locations", 50, "⚔️"
    ),
    "DEVOTED": BadgeDefinition(COMPLETION_COUNT, "Devoted", "Completed 100 prayer locations", 100, "👑"),
    "DISTANCE_WALKER": BadgeDefinition(
        DISTANCE, "Distance Walker", "Walked 10 kilometers in prayer", 10000, "🏃"
    ),
    "MARATHON_PRAYER": BadgeDefinition(
        DISTANCE, "Marathon Prayer", "Walked 42 kilometers in prayer", 42000, "🏅"
    ),
    "CATEGORY_EXPLORER": BadgeDefinition(
        CATEGORY_DIVERSITY,
        "Category Explorer",
        "Completed prayers in 5 different categories",
        5,
        "🗺️",
    ),
    "STREAK_KEEPER": BadgeDefinition(
        STREAK, "Streak Keeper", "Completed prayers on 7 consecutive days", 7, "🔥"
    ),
    "EARLY_BIRD": BadgeDefinition(
        TIME_BASED, "Early Bird", "Completed 10 prayers before 8 AM", 10, "🌅"
    ),
}


@dataclass(frozen=True)
class UserHistory:
    completion_count: int
    total_distance_m: float
    category_count: int
    streak: int
    early_completions: int

    def value_for(self, family: str) -> float:
        return {
            COMPLETION_COUNT: self.completion_count,
            DISTANCE: self.total_distance_m,
            CATEGORY_DIVERSITY: self.category_count,
            STREAK: self.streak,
            TIME_BASED: self.early_completions,
        }[family]


def calculate_streak(completion_times: list[datetime], timezone: str = "UTC") -> int:
    """
    Consecutive calendar days with a completion, counted back from the newest one.

    Args:
        completion_times: Aware datetimes, newest first
        timezone: Zone whose midnight separates days

    Returns:
        Streak length, 0 without completions
    """
    if not completion_times:
        return 0

    tz = pytz.timezone(timezone)
    days = [ts.astimezone(tz).date() for ts in completion_times]

    streak = 1
    current_day = days[0]
    for day in days[1:]:
        days_diff = (current_day - day).days
        if days_diff == 1:
            streak += 1
            current_day = day
        elif days_diff > 1:
            break
        # days_diff == 0: another completion on the same day

    return streak


def count_early_completions(
    completion_times: list[datetime], cutoff_hour: int = EARLY_BIRD_CUTOFF_HOUR
) -> int:
    """Completions whose UTC hour is before the cutoff"""
    return sum(1 for ts in completion_times if ts.astimezone(pytz.utc).hour < cutoff_hour)


def qualifying_badges(history: UserHistory, held: set[str]) -> list[tuple[str, int]]:
    """Badge types the history earns that are not held yet, with their milestone value.

    Count and distance badges record the threshold, the other families record
    the value actually reached.
    """
    earned = []
    for badge_type, badge in BADGE_MILESTONES.items():
        if badge_type in held:
            continue
        value = history.value_for(badge.family)
        if value < badge.threshold:
            continue
        if badge.family in (COMPLETION_COUNT, DISTANCE):
            earned.append((badge_type, badge.threshold))
        else:
            earned.append((badge_type, int(value)))
    return earned


async def load_history(store: WalkStore, user_id: str, timezone: str = "UTC") -> UserHistory:
    completion_times = await store.completion_times(user_id)
    return UserHistory(
        completion_count=await store.count_completions(user_id),
        total_distance_m=await store.total_distance(user_id),
        category_count=await store.count_categories(user_id),
        streak=calculate_streak(completion_times, timezone),
        early_completions=count_early_completions(completion_times),
    )


async def award_badges(store: WalkStore, user_id: str, timezone: str = "UTC") -> list[str]:
    """Award every newly earned badge. Returns the names of badges awarded by this call."""
    held = await store.get_badge_types(user_id)
    history = await load_history(store, user_id, timezone)

    awarded = []
    for badge_type, milestone_value in qualifying_badges(history, held):
        badge = BADGE_MILESTONES[badge_type]
        is_new = await store.add_badge(
            user_id=user_id,
            badge_type=badge_type,
            badge_name=badge.name,
            description=badge.description,
            icon=badge.icon,
            milestone_value=milestone_value,
        )
        if is_new:
            awarded.append(badge.name)

    if awarded:
        logger.info(f"🏅 User {user_id} earned badges: {', '.join(awarded)}")
    return awarded


async def get_badge_progress(
    store: WalkStore, user_id: str, timezone: str = "UTC"
) -> dict[str, Any]:
    """Current values per badge family next to their milestones"""
    history = await load_history(store, user_id, timezone)

    def milestones(family: str) -> list[int]:
        return sorted(b.threshold for b in BADGE_MILESTONES.values() if b.family == family)

    return {
        "completions": {
            "current": history.completion_count,
            "milestones": milestones(COMPLETION_COUNT),
        },
        "distance": {
            "current": history.total_distance_m,
            "milestones": milestones(DISTANCE),
        },
        "categories": {
            "current": history.category_count,
            "milestone": BADGE_MILESTONES["CATEGORY_EXPLORER"].threshold,
        },
        "streak": {
            "current": history.streak,
            "milestone": BADGE_MILESTONES["STREAK_KEEPER"].threshold,
        },
        "earlyBird": {
            "current": history.early_completions,
            "milestone": BADGE_MILESTONES["EARLY_BIRD"].threshold,
        },
    }
