"""
Activity Tracker - streaks, daily goals and badges derived from the activity log.

Every study action is appended to activity_events exactly once and never
changed. Streaks, goal progress, badges and calendar totals are recomputed from
that log on demand, so the calendar view, the streak badge and the daily goals
ring always agree.

Days are UTC calendar days.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union

from sqlalchemy import func

from models import db
from models.activity_event import ActivityEvent
from models.learner import Learner
from services.clock import end_of_day, start_of_day, to_utc
from services.errors import InvalidTimestamp
from services.item_store import ItemStore, atomic, translate_store_errors
from services.review_models import (
    Badge, BadgeCategory, BadgeStats, DailyGoalProgress, GoalMetric, StreakState, StreakStats
)

logger = logging.getLogger(__name__)


class ActivityKind(str, Enum):
    WORD_REVIEWED = 'word-reviewed'
    MINUTE_STUDIED = 'minute-studied'
    QUESTION_ANSWERED = 'question-answered'
    LESSON_COMPLETED = 'lesson-completed'

    @classmethod
    def parse(cls, value: Union['ActivityKind', str]) -> 'ActivityKind':
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Invalid activity kind: {value!r}. Must be one of: {[k.value for k in cls]}"
            ) from None


DEFAULT_GOALS = {
    'words': 10,
    'minutes': 15,
    'questions': 5,
}


def derive_streak(study_days: Iterable[date], today: date) -> StreakStats:
    """
    Compute streak state from the set of qualifying days.

    The current streak counts back from today if today qualifies, otherwise
    from yesterday, so a learner who studied yesterday keeps their streak
    until midnight. Days after `today` are ignored.

    Args:
        study_days: Calendar days with at least one activity event
        today: The learner's current calendar day

    Returns:
        StreakStats

    Example:
        >>> days = {date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)}
        >>> derive_streak(days, date(2024, 1, 4)).current_streak
        3
    """
    days = sorted({d for d in study_days if d <= today})
    day_set = set(days)
    yesterday = today - timedelta(days=1)

    is_active = today in day_set
    if is_active:
        anchor = today
    elif yesterday in day_set:
        anchor = yesterday
    else:
        anchor = None

    current = 0
    if anchor is not None:
        cursor = anchor
        while cursor in day_set:
            current += 1
            cursor -= timedelta(days=1)

    longest = 0
    run = 0
    previous = None
    for day in days:
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day

    return StreakStats(
        state=StreakState.ACTIVE_STREAK if current > 0 else StreakState.NO_STREAK,
        current_streak=current,
        longest_streak=max(longest, current),
        total_study_days=len(days),
        last_activity_date=days[-1] if days else None,
        is_active=is_active,
        needs_activity=current > 0 and not is_active,
        days_until_break=1 if is_active else 0,
    )


def _percentage(actual: int, goal: int) -> int:
    """actual/goal as a whole percent, half-up rounded and clamped to [0, 100]"""
    raw = (Decimal(actual) / Decimal(goal) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return max(0, min(100, int(raw)))


BADGE_DEFINITIONS = {
    # Streak badges
    'streak_3': {'name': 'Getting Started', 'description': 'Studied for 3 days in a row', 'icon': '🔥', 'category': BadgeCategory.STREAK},
    'streak_7': {'name': 'Week Warrior', 'description': 'Studied for 7 days in a row', 'icon': '⚡', 'category': BadgeCategory.STREAK},
    'streak_14': {'name': 'Two Week Champion', 'description': 'Studied for 14 days in a row', 'icon': '💪', 'category': BadgeCategory.STREAK},
    'streak_30': {'name': 'Monthly Master', 'description': 'Studied for 30 days in a row', 'icon': '🏆', 'category': BadgeCategory.STREAK},
    'streak_50': {'name': 'Dedication Expert', 'description': 'Studied for 50 days in a row', 'icon': '🌟', 'category': BadgeCategory.STREAK},
    'streak_100': {'name': 'Century Club', 'description': 'Studied for 100 days in a row', 'icon': '💯', 'category': BadgeCategory.STREAK},
    'streak_365': {'name': 'Year Legend', 'description': 'Studied for 365 days in a row', 'icon': '👑', 'category': BadgeCategory.STREAK},
    # Words badges
    'words_100': {'name': 'Vocabulary Starter', 'description': 'Reviewed 100 words', 'icon': '📚', 'category': BadgeCategory.WORDS},
    'words_500': {'name': 'Word Collector', 'description': 'Reviewed 500 words', 'icon': '📖', 'category': BadgeCategory.WORDS},
    'words_1000': {'name': 'Vocabulary Master', 'description': 'Reviewed 1,000 words', 'icon': '🎓', 'category': BadgeCategory.WORDS},
    # Time badges
    'time_10h': {'name': 'Time Investor', 'description': 'Studied for 10 hours total', 'icon': '⏰', 'category': BadgeCategory.TIME},
    'time_50h': {'name': 'Dedicated Learner', 'description': 'Studied for 50 hours total', 'icon': '⏳', 'category': BadgeCategory.TIME},
    'time_100h': {'name': 'Study Marathon', 'description': 'Studied for 100 hours total', 'icon': '🏅', 'category': BadgeCategory.TIME},
    # Milestone badges
    'first_day': {'name': 'First Steps', 'description': 'Completed your first study session', 'icon': '🌱', 'category': BadgeCategory.MILESTONE},
    'comeback_kid': {'name': 'Comeback Kid', 'description': 'Restarted after breaking a streak', 'icon': '🔄', 'category': BadgeCategory.MILESTONE},
    'perfect_week': {'name': 'Perfect Week', 'description': 'Met daily goals for 7 days straight', 'icon': '✨', 'category': BadgeCategory.MILESTONE},
}

STREAK_MILESTONES = (3, 7, 14, 30, 50, 100, 365)
WORDS_MILESTONES = (100, 500, 1000)
TIME_MILESTONES_HOURS = (10, 50, 100)
PERFECT_WEEK_DAYS = 7

# A broken streak at least this long earns comeback_kid when study resumes
COMEBACK_MIN_STREAK = 3


def _goals_met(totals: Mapping[str, int], goals: Mapping[str, int]) -> bool:
    return (
        totals.get(ActivityKind.WORD_REVIEWED.value, 0) >= goals['words']
        and totals.get(ActivityKind.MINUTE_STUDIED.value, 0) >= goals['minutes']
        and totals.get(ActivityKind.QUESTION_ANSWERED.value, 0) >= goals['questions']
    )


def derive_badges(
    daily_totals: Mapping[date, Mapping[str, int]],
    goals: Mapping[str, int],
    today: date
) -> List[Badge]:
    """
    Badges earned by replaying per-day activity totals in date order.

    Each badge carries the first day its condition held:
    - first_day: the first study day
    - streak_N: the day a run of consecutive study days reaches N
    - comeback_kid: the first study day after a streak of 3+ days broke
    - words_N / time_Nh: the day cumulative word reviews / study minutes reach N
    - perfect_week: the 7th consecutive day with every daily goal met

    Goals are the learner's current goals; past goal changes are not replayed.

    Args:
        daily_totals: {day: {activity kind: quantity}} for days with activity
        goals: {'words': int, 'minutes': int, 'questions': int}
        today: Days after this are ignored

    Returns:
        Earned badges ordered by earned_on, then definition order
    """
    earned: Dict[str, date] = {}
    words = minutes = 0
    run = perfect_run = 0
    previous = None

    for day in sorted(d for d in daily_totals if d <= today):
        totals = daily_totals[day]
        consecutive = previous is not None and day - previous == timedelta(days=1)

        if previous is None:
            earned.setdefault('first_day', day)
        if consecutive:
            run += 1
        else:
            if run >= COMEBACK_MIN_STREAK:
                earned.setdefault('comeback_kid', day)
            run = 1
        if run in STREAK_MILESTONES:
            earned.setdefault(f'streak_{run}', day)

        words += totals.get(ActivityKind.WORD_REVIEWED.value, 0)
        minutes += totals.get(ActivityKind.MINUTE_STUDIED.value, 0)
        for milestone in WORDS_MILESTONES:
            if words >= milestone:
                earned.setdefault(f'words_{milestone}', day)
        for hours in TIME_MILESTONES_HOURS:
            if minutes >= hours * 60:
                earned.setdefault(f'time_{hours}h', day)

        if _goals_met(totals, goals):
            perfect_run = perfect_run + 1 if consecutive else 1
        else:
            perfect_run = 0
        if perfect_run >= PERFECT_WEEK_DAYS:
            earned.setdefault('perfect_week', day)

        previous = day

    order = list(BADGE_DEFINITIONS)
    return [
        Badge(badge_id=badge_id, earned_on=day, **BADGE_DEFINITIONS[badge_id])
        for badge_id, day in sorted(earned.items(), key=lambda item: (item[1], order.index(item[0])))
    ]


class ActivityTracker:
    """Writes activity events and derives streak / goal views from them"""

    def __init__(self, store: Optional[ItemStore] = None, default_goals: Optional[Mapping[str, int]] = None):
        self.store = store or ItemStore()
        goals = dict(DEFAULT_GOALS)
        goals.update(default_goals or {})
        for name, value in goals.items():
            if value < 1:
                raise ValueError(f"Daily {name} goal must be a positive integer, got {value}")
        self.default_goals = goals

    @classmethod
    def from_config(cls, config: Mapping, store: Optional[ItemStore] = None) -> 'ActivityTracker':
        return cls(
            store=store or ItemStore(enforce_learner=config.get('ENFORCE_LEARNER_EXISTS', True)),
            default_goals={
                'words': config.get('DAILY_WORDS_GOAL', DEFAULT_GOALS['words']),
                'minutes': config.get('DAILY_MINUTES_GOAL', DEFAULT_GOALS['minutes']),
                'questions': config.get('DAILY_QUESTIONS_GOAL', DEFAULT_GOALS['questions']),
            }
        )

    # Writes

    def append_event(
        self,
        learner_id: int,
        kind: Union[ActivityKind, str],
        quantity: int,
        occurred_at: datetime,
        now: datetime
    ) -> ActivityEvent:
        """
        Stage an activity event in the current transaction without committing.

        Raises:
            ValueError: If kind is unknown or quantity is not a positive integer
            InvalidTimestamp: If occurred_at is later than now
        """
        kind = ActivityKind.parse(kind)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValueError(f"quantity must be a positive integer, got {quantity!r}")

        occurred_at = to_utc(occurred_at)
        now = to_utc(now)
        if occurred_at > now:
            logger.warning(
                f"Rejected future-dated activity for learner_id={learner_id}: "
                f"occurred_at={occurred_at.isoformat()} now={now.isoformat()}"
            )
            raise InvalidTimestamp(
                f"Activity timestamp {occurred_at.isoformat()} is in the future"
            )

        event = ActivityEvent(
            learner_id=learner_id,
            occurred_at=occurred_at,
            kind=kind.value,
            quantity=quantity
        )
        db.session.add(event)
        return event

    def record_activity(
        self,
        learner_id: int,
        kind: Union[ActivityKind, str],
        quantity: int,
        occurred_at: datetime,
        now: datetime
    ) -> ActivityEvent:
        """Validate and durably append one activity event."""
        self.store.ensure_learner(learner_id)
        with atomic():
            event = self.append_event(learner_id, kind, quantity, occurred_at, now)

        logger.info(
            f"Recorded activity: learner_id={learner_id}, kind={event.kind}, quantity={event.quantity}"
        )
        return event

    # Reads

    @translate_store_errors
    def study_days(self, learner_id: int, now: datetime) -> Set[date]:
        """Distinct UTC days with at least one event at or before now"""
        rows = db.session.query(ActivityEvent.occurred_at).filter(
            ActivityEvent.learner_id == learner_id,
            ActivityEvent.occurred_at <= to_utc(now)
        ).all()
        return {row[0].date() for row in rows}

    @translate_store_errors
    def sum_quantities(
        self,
        learner_id: int,
        start: datetime,
        end: datetime,
        kinds: Optional[Iterable[ActivityKind]] = None
    ) -> Dict[str, int]:
        """Total quantity per kind for events with start <= occurred_at < end"""
        query = db.session.query(
            ActivityEvent.kind,
            func.coalesce(func.sum(ActivityEvent.quantity), 0)
        ).filter(
            ActivityEvent.learner_id == learner_id,
            ActivityEvent.occurred_at >= start,
            ActivityEvent.occurred_at < end
        )
        if kinds is not None:
            query = query.filter(ActivityEvent.kind.in_([ActivityKind(k).value for k in kinds]))
        totals = {kind.value: 0 for kind in ActivityKind}
        for kind, total in query.group_by(ActivityEvent.kind).all():
            totals[kind] = int(total)
        return totals

    def get_streak_stats(self, learner_id: int, now: datetime) -> StreakStats:
        """
        Streak status as of `now`.

        A learner with no events at all gets a zero streak, not an error.

        Raises:
            NotFound: If the learner does not exist
        """
        self.store.ensure_learner(learner_id)
        now = to_utc(now)
        stats = derive_streak(self.study_days(learner_id, now), now.date())
        logger.debug(
            f"Streak for learner_id={learner_id}: current={stats.current_streak}, "
            f"longest={stats.longest_streak}, needs_activity={stats.needs_activity}"
        )
        return stats

    @translate_store_errors
    def goals_for(self, learner_id: int) -> Dict[str, int]:
        """Configured goals with the learner's own overrides applied"""
        goals = dict(self.default_goals)
        learner = db.session.get(Learner, learner_id)
        if learner is not None:
            if learner.words_goal:
                goals['words'] = learner.words_goal
            if learner.minutes_goal:
                goals['minutes'] = learner.minutes_goal
            if learner.questions_goal:
                goals['questions'] = learner.questions_goal
        return goals

    def get_daily_goal_progress(self, learner_id: int, now: datetime) -> DailyGoalProgress:
        """
        Today's progress toward the daily goals.

        Each metric is today's total for its activity kind divided by the goal,
        as a percentage clamped to [0, 100]. Overall progress is the rounded
        mean of the three.

        Raises:
            NotFound: If the learner does not exist
        """
        self.store.ensure_learner(learner_id)
        now = to_utc(now)
        today = now.date()
        goals = self.goals_for(learner_id)
        totals = self.sum_quantities(
            learner_id,
            start_of_day(today),
            min(end_of_day(today), now + timedelta(microseconds=1))
        )

        words = GoalMetric(
            goal=goals['words'],
            actual=totals[ActivityKind.WORD_REVIEWED.value],
            percentage=_percentage(totals[ActivityKind.WORD_REVIEWED.value], goals['words'])
        )
        minutes = GoalMetric(
            goal=goals['minutes'],
            actual=totals[ActivityKind.MINUTE_STUDIED.value],
            percentage=_percentage(totals[ActivityKind.MINUTE_STUDIED.value], goals['minutes'])
        )
        questions = GoalMetric(
            goal=goals['questions'],
            actual=totals[ActivityKind.QUESTION_ANSWERED.value],
            percentage=_percentage(totals[ActivityKind.QUESTION_ANSWERED.value], goals['questions'])
        )

        overall = int(
            (Decimal(words.percentage + minutes.percentage + questions.percentage) / 3)
            .quantize(Decimal('1'), rounding=ROUND_HALF_UP)
        )

        return DailyGoalProgress(
            goal_date=today,
            words_reviewed=words,
            minutes_studied=minutes,
            questions_answered=questions,
            overall_progress=overall,
            is_complete=overall == 100
        )

    @translate_store_errors
    def get_activity_calendar(self, learner_id: int, start_date: date, end_date: date) -> Dict[date, Dict[str, int]]:
        """
        Per-day totals for every activity kind over [start_date, end_date].

        Days without events are omitted.

        Raises:
            ValueError: If end_date is before start_date
            NotFound: If the learner does not exist
        """
        if end_date < start_date:
            raise ValueError("end_date must not be before start_date")
        self.store.ensure_learner(learner_id)

        rows = db.session.query(
            ActivityEvent.occurred_at,
            ActivityEvent.kind,
            ActivityEvent.quantity
        ).filter(
            ActivityEvent.learner_id == learner_id,
            ActivityEvent.occurred_at >= start_of_day(start_date),
            ActivityEvent.occurred_at < end_of_day(end_date)
        ).all()

        return _group_by_day(rows)

    @translate_store_errors
    def daily_totals(self, learner_id: int, now: datetime) -> Dict[date, Dict[str, int]]:
        """Per-day totals for every event at or before now"""
        rows = db.session.query(
            ActivityEvent.occurred_at,
            ActivityEvent.kind,
            ActivityEvent.quantity
        ).filter(
            ActivityEvent.learner_id == learner_id,
            ActivityEvent.occurred_at <= to_utc(now)
        ).all()
        return _group_by_day(rows)

    def get_badges(self, learner_id: int, now: datetime) -> List[Badge]:
        """
        Badges earned as of `now`, oldest first.

        Raises:
            NotFound: If the learner does not exist
        """
        self.store.ensure_learner(learner_id)
        now = to_utc(now)
        badges = derive_badges(self.daily_totals(learner_id, now), self.goals_for(learner_id), now.date())
        logger.debug(f"Badges for learner_id={learner_id}: {[b.badge_id for b in badges]}")
        return badges

    def get_badge_stats(self, learner_id: int, now: datetime) -> BadgeStats:
        badges = self.get_badges(learner_id, now)
        by_category = {category: 0 for category in BadgeCategory}
        for badge in badges:
            by_category[badge.category] += 1
        return BadgeStats(
            total=len(badges),
            by_category=by_category,
            recent_badges=list(reversed(badges))[:5],
            badges=badges
        )


def _group_by_day(rows) -> Dict[date, Dict[str, int]]:
    totals = defaultdict(lambda: {kind.value: 0 for kind in ActivityKind})
    for occurred_at, kind, quantity in rows:
        totals[occurred_at.date()][kind] += quantity
    return dict(sorted(totals.items()))
