"""
Unit tests for the activity tracker.

Tests streaks, daily goals, badges and the activity calendar including:
- Streak continuation, grace day and break
- Longest streak history
- Goal percentages, clamping and half-up rounding
- Learner goal overrides
- Future-dated events
- Badges derived from the same log
"""

import sys
import os
import pytest
from datetime import date, datetime, timedelta

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from models import db
from models.activity_event import ActivityEvent
from models.learner import Learner
from services.activity_tracker import ActivityKind, ActivityTracker, derive_badges, derive_streak
from services.errors import InvalidTimestamp, NotFound
from services.review_models import BadgeCategory, StreakState

D = date(2024, 1, 1)


def at(day, hour=10, minute=0):
    return datetime(day.year, day.month, day.day, hour, minute)


@pytest.fixture(scope='function')
def app_context():
    """Create a fresh app context and database for each test"""
    app = create_app('testing')
    app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'
    app.config['TESTING'] = True

    with app.app_context():
        db.create_all()

        yield app

        db.session.remove()
        db.drop_all()


@pytest.fixture
def learner(app_context):
    """Create a test learner"""
    learner = Learner(email='streak@example.com', name='Streak Learner')
    db.session.add(learner)
    db.session.commit()
    return learner


@pytest.fixture
def tracker(app_context):
    return ActivityTracker.from_config(app_context.config)


class TestDeriveStreak:
    """Test the pure streak computation"""

    def test_no_days(self):
        stats = derive_streak([], D)

        assert stats.state == StreakState.NO_STREAK
        assert stats.current_streak == 0
        assert stats.longest_streak == 0
        assert stats.last_activity_date is None
        assert stats.needs_activity is False

    def test_active_today(self):
        stats = derive_streak([D, D + timedelta(days=1)], D + timedelta(days=1))

        assert stats.current_streak == 2
        assert stats.is_active is True
        assert stats.needs_activity is False
        assert stats.days_until_break == 1

    def test_gap_breaks_streak(self):
        days = [D, D + timedelta(days=1), D + timedelta(days=3)]
        stats = derive_streak(days, D + timedelta(days=3))

        assert stats.current_streak == 1
        assert stats.longest_streak == 2
        assert stats.total_study_days == 3

    def test_future_days_ignored(self):
        stats = derive_streak([D, D + timedelta(days=5)], D)
        assert stats.current_streak == 1
        assert stats.total_study_days == 1


class TestStreakStats:
    """Streaks derived from recorded activity"""

    def _study(self, tracker, learner, days):
        for day in days:
            tracker.record_activity(learner.id, 'word-reviewed', 1, at(day), at(day))

    def test_three_day_streak(self, tracker, learner):
        """Study on D, D+1, D+2 gives a streak of 3 on D+2"""
        self._study(tracker, learner, [D + timedelta(days=i) for i in range(3)])

        stats = tracker.get_streak_stats(learner.id, at(D + timedelta(days=2), 18))
        assert stats.current_streak == 3
        assert stats.state == StreakState.ACTIVE_STREAK
        assert stats.is_active is True

    def test_streak_survives_until_end_of_next_day(self, tracker, learner):
        """On D+3 with no activity the streak is 3 but needs activity"""
        self._study(tracker, learner, [D + timedelta(days=i) for i in range(3)])

        stats = tracker.get_streak_stats(learner.id, at(D + timedelta(days=3), 9))
        assert stats.current_streak == 3
        assert stats.is_active is False
        assert stats.needs_activity is True
        assert stats.days_until_break == 0

    def test_streak_breaks_after_missed_day(self, tracker, learner):
        """On D+4 with nothing since D+2 the streak is 0"""
        self._study(tracker, learner, [D + timedelta(days=i) for i in range(3)])

        stats = tracker.get_streak_stats(learner.id, at(D + timedelta(days=4), 9))
        assert stats.current_streak == 0
        assert stats.state == StreakState.NO_STREAK
        assert stats.needs_activity is False
        assert stats.longest_streak == 3
        assert stats.last_activity_date == D + timedelta(days=2)

    def test_streak_lifecycle_over_missed_days(self, tracker, learner):
        """Events on D..D+2: as of D+3 the streak is 3 and needs activity; as of D+4 it is 0"""
        self._study(tracker, learner, [D, D + timedelta(days=1), D + timedelta(days=2)])

        day_after = tracker.get_streak_stats(learner.id, at(D + timedelta(days=3), 8))
        assert day_after.current_streak == 3
        assert day_after.needs_activity is True
        assert day_after.longest_streak == 3

        two_days_after = tracker.get_streak_stats(learner.id, at(D + timedelta(days=4), 8))
        assert two_days_after.current_streak == 0
        assert two_days_after.needs_activity is False
        assert two_days_after.longest_streak == 3

    def test_zero_events(self, tracker, learner):
        """A learner who never studied has a zero streak, not an error"""
        stats = tracker.get_streak_stats(learner.id, at(D))
        assert stats.current_streak == 0
        assert stats.total_study_days == 0

    def test_any_activity_kind_counts(self, tracker, learner):
        tracker.record_activity(learner.id, ActivityKind.MINUTE_STUDIED, 5, at(D), at(D))
        tracker.record_activity(learner.id, ActivityKind.QUESTION_ANSWERED, 1, at(D + timedelta(days=1)), at(D + timedelta(days=1)))

        stats = tracker.get_streak_stats(learner.id, at(D + timedelta(days=1), 23))
        assert stats.current_streak == 2

    def test_unknown_learner(self, tracker, app_context):
        with pytest.raises(NotFound):
            tracker.get_streak_stats(9999, at(D))


class TestRecordActivity:

    def test_future_event_rejected(self, tracker, learner):
        """Events after now raise InvalidTimestamp and are not stored"""
        with pytest.raises(InvalidTimestamp):
            tracker.record_activity(learner.id, 'word-reviewed', 1, at(D, 12), at(D, 11))

        assert ActivityEvent.query.count() == 0

    def test_backdated_event_accepted(self, tracker, learner):
        tracker.record_activity(learner.id, 'minute-studied', 20, at(D), at(D + timedelta(days=1)))
        assert ActivityEvent.query.count() == 1

    @pytest.mark.parametrize('quantity', [0, -3, 1.5, True, '2'])
    def test_invalid_quantity(self, tracker, learner, quantity):
        with pytest.raises(ValueError):
            tracker.record_activity(learner.id, 'minute-studied', quantity, at(D), at(D))

    def test_unknown_kind(self, tracker, learner):
        with pytest.raises(ValueError):
            tracker.record_activity(learner.id, 'napping', 1, at(D), at(D))


class TestDailyGoalProgress:
    """Test daily goal percentages"""

    def test_partial_progress(self, tracker, learner):
        """5 of 10 words, 15 of 15 minutes, 0 of 5 questions"""
        tracker.record_activity(learner.id, 'word-reviewed', 5, at(D, 8), at(D, 8))
        tracker.record_activity(learner.id, 'minute-studied', 15, at(D, 9), at(D, 9))

        progress = tracker.get_daily_goal_progress(learner.id, at(D, 20))

        assert progress.goal_date == D
        assert progress.words_reviewed.actual == 5
        assert progress.words_reviewed.percentage == 50
        assert progress.minutes_studied.percentage == 100
        assert progress.questions_answered.percentage == 0
        assert progress.overall_progress == 50
        assert progress.is_complete is False

    def test_complete(self, tracker, learner):
        tracker.record_activity(learner.id, 'word-reviewed', 10, at(D, 8), at(D, 8))
        tracker.record_activity(learner.id, 'minute-studied', 15, at(D, 8), at(D, 8))
        tracker.record_activity(learner.id, 'question-answered', 5, at(D, 8), at(D, 8))

        progress = tracker.get_daily_goal_progress(learner.id, at(D, 20))
        assert progress.overall_progress == 100
        assert progress.is_complete is True

    def test_percentages_are_clamped(self, tracker, learner):
        tracker.record_activity(learner.id, 'word-reviewed', 25, at(D, 8), at(D, 8))

        progress = tracker.get_daily_goal_progress(learner.id, at(D, 20))
        assert progress.words_reviewed.actual == 25
        assert progress.words_reviewed.percentage == 100

    def test_half_up_rounding(self, tracker, learner):
        """1 of 8 is 12.5%, shown as 13"""
        learner.words_goal = 8
        db.session.commit()
        tracker.record_activity(learner.id, 'word-reviewed', 1, at(D, 8), at(D, 8))

        progress = tracker.get_daily_goal_progress(learner.id, at(D, 20))
        assert progress.words_reviewed.goal == 8
        assert progress.words_reviewed.percentage == 13
        assert progress.overall_progress == 4

    def test_only_today_counts(self, tracker, learner):
        yesterday = D - timedelta(days=1)
        tracker.record_activity(learner.id, 'word-reviewed', 10, at(yesterday, 23, 59), at(yesterday, 23, 59))

        progress = tracker.get_daily_goal_progress(learner.id, at(D, 0, 1))
        assert progress.words_reviewed.actual == 0
        assert progress.overall_progress == 0

    def test_configured_defaults(self, app_context, learner):
        app_context.config['DAILY_QUESTIONS_GOAL'] = 2
        tracker = ActivityTracker.from_config(app_context.config)
        tracker.record_activity(learner.id, 'question-answered', 1, at(D, 8), at(D, 8))

        progress = tracker.get_daily_goal_progress(learner.id, at(D, 9))
        assert progress.questions_answered.goal == 2
        assert progress.questions_answered.percentage == 50

    def test_rejects_non_positive_goal(self):
        with pytest.raises(ValueError):
            ActivityTracker(default_goals={'words': 0})


class TestActivityCalendar:

    def test_totals_per_day(self, tracker, learner):
        tracker.record_activity(learner.id, 'word-reviewed', 3, at(D, 8), at(D, 8))
        tracker.record_activity(learner.id, 'word-reviewed', 2, at(D, 22), at(D, 22))
        tracker.record_activity(learner.id, 'minute-studied', 10, at(D + timedelta(days=2)), at(D + timedelta(days=2)))
        tracker.record_activity(learner.id, 'minute-studied', 99, at(D + timedelta(days=9)), at(D + timedelta(days=9)))

        calendar = tracker.get_activity_calendar(learner.id, D, D + timedelta(days=6))

        assert list(calendar) == [D, D + timedelta(days=2)]
        assert calendar[D]['word-reviewed'] == 5
        assert calendar[D]['minute-studied'] == 0
        assert calendar[D + timedelta(days=2)]['minute-studied'] == 10

    def test_rejects_reversed_range(self, tracker, learner):
        with pytest.raises(ValueError):
            tracker.get_activity_calendar(learner.id, D, D - timedelta(days=1))


def days_with(totals, count, start=D):
    return {start + timedelta(days=i): dict(totals) for i in range(count)}


SMALL_GOALS = {'words': 1, 'minutes': 1, 'questions': 1}


class TestDeriveBadges:
    """Test the pure badge derivation"""

    def test_no_activity(self):
        assert derive_badges({}, SMALL_GOALS, D) == []

    def test_first_day_and_streak(self):
        badges = derive_badges(days_with({'word-reviewed': 1}, 3), SMALL_GOALS, D + timedelta(days=2))

        assert [(b.badge_id, b.earned_on) for b in badges] == [
            ('first_day', D),
            ('streak_3', D + timedelta(days=2)),
        ]
        assert badges[1].name == 'Getting Started'
        assert badges[1].category == BadgeCategory.STREAK

    def test_comeback_after_broken_streak(self):
        totals = days_with({'word-reviewed': 1}, 3)
        totals[D + timedelta(days=5)] = {'word-reviewed': 1}

        badges = {b.badge_id: b.earned_on for b in derive_badges(totals, SMALL_GOALS, D + timedelta(days=5))}
        assert badges['comeback_kid'] == D + timedelta(days=5)

    def test_no_comeback_after_short_streak(self):
        totals = days_with({'word-reviewed': 1}, 2)
        totals[D + timedelta(days=5)] = {'word-reviewed': 1}

        badge_ids = [b.badge_id for b in derive_badges(totals, SMALL_GOALS, D + timedelta(days=5))]
        assert 'comeback_kid' not in badge_ids

    def test_cumulative_words_and_time(self):
        totals = {
            D: {'word-reviewed': 60, 'minute-studied': 300},
            D + timedelta(days=4): {'word-reviewed': 45, 'minute-studied': 300},
        }

        badges = {b.badge_id: b.earned_on for b in derive_badges(totals, SMALL_GOALS, D + timedelta(days=4))}
        assert badges['words_100'] == D + timedelta(days=4)
        assert badges['time_10h'] == D + timedelta(days=4)
        assert 'words_500' not in badges
        assert 'time_50h' not in badges

    def test_perfect_week(self):
        met = {'word-reviewed': 1, 'minute-studied': 1, 'question-answered': 1}
        badges = derive_badges(days_with(met, 7), SMALL_GOALS, D + timedelta(days=6))

        assert [(b.badge_id, b.earned_on) for b in badges] == [
            ('first_day', D),
            ('streak_3', D + timedelta(days=2)),
            ('streak_7', D + timedelta(days=6)),
            ('perfect_week', D + timedelta(days=6)),
        ]

    def test_missed_goal_resets_perfect_week(self):
        met = {'word-reviewed': 1, 'minute-studied': 1, 'question-answered': 1}
        totals = days_with(met, 7)
        totals[D + timedelta(days=3)] = {'word-reviewed': 1}

        badge_ids = [b.badge_id for b in derive_badges(totals, SMALL_GOALS, D + timedelta(days=6))]
        assert 'streak_7' in badge_ids
        assert 'perfect_week' not in badge_ids

    def test_future_days_ignored(self):
        badges = derive_badges(days_with({'word-reviewed': 1}, 3), SMALL_GOALS, D)
        assert [b.badge_id for b in badges] == ['first_day']


class TestBadgeStats:
    """Badges derived from recorded activity"""

    def test_badge_stats(self, tracker, learner):
        for i in range(3):
            day = D + timedelta(days=i)
            tracker.record_activity(learner.id, 'word-reviewed', 40, at(day), at(day))

        stats = tracker.get_badge_stats(learner.id, at(D + timedelta(days=2), 20))

        assert stats.total == 3
        assert [b.badge_id for b in stats.badges] == ['first_day', 'streak_3', 'words_100']
        assert [b.badge_id for b in stats.recent_badges] == ['words_100', 'streak_3', 'first_day']
        assert stats.by_category[BadgeCategory.STREAK] == 1
        assert stats.by_category[BadgeCategory.WORDS] == 1
        assert stats.by_category[BadgeCategory.MILESTONE] == 1
        assert stats.by_category[BadgeCategory.ACCURACY] == 0

    def test_badges_as_of_earlier_date(self, tracker, learner):
        for i in range(3):
            day = D + timedelta(days=i)
            tracker.record_activity(learner.id, 'word-reviewed', 1, at(day), at(day))

        badges = tracker.get_badges(learner.id, at(D + timedelta(days=1), 20))
        assert [b.badge_id for b in badges] == ['first_day']

    def test_no_activity(self, tracker, learner):
        stats = tracker.get_badge_stats(learner.id, at(D))
        assert stats.total == 0
        assert stats.recent_badges == []

    def test_unknown_learner(self, tracker, app_context):
        with pytest.raises(NotFound):
            tracker.get_badges(9999, at(D))
