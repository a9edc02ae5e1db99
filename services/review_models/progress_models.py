"""
Progress Pydantic Models

Derived views over the activity log and schedule store. None of these are
persisted; they are recomputed on every request.
"""

from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class StreakState(str, Enum):
    NO_STREAK = 'no_streak'
    ACTIVE_STREAK = 'active_streak'


class StreakStats(BaseModel):
    """
    Streak status for one learner as of a given instant.

    Example:
    {
        "state": "active_streak",
        "current_streak": 3,
        "longest_streak": 5,
        "total_study_days": 12,
        "last_activity_date": "2024-01-03",
        "is_active": false,
        "needs_activity": true,
        "days_until_break": 0
    }
    """
    state: StreakState = Field(description="no_streak when current_streak is 0")
    current_streak: int = Field(ge=0, description="Consecutive qualifying days ending today or yesterday")
    longest_streak: int = Field(ge=0, description="Longest run of consecutive qualifying days")
    total_study_days: int = Field(ge=0, description="Number of distinct qualifying days")
    last_activity_date: Optional[date] = Field(default=None, description="Most recent qualifying day")
    is_active: bool = Field(description="Today already has at least one event")
    needs_activity: bool = Field(description="A streak exists but today does not qualify yet")
    days_until_break: int = Field(ge=0, description="1 if today qualifies, else 0")


class GoalMetric(BaseModel):
    goal: int = Field(ge=1)
    actual: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)


class DailyGoalProgress(BaseModel):
    """Today's progress toward the words / minutes / questions goals"""
    goal_date: date
    words_reviewed: GoalMetric
    minutes_studied: GoalMetric
    questions_answered: GoalMetric
    overall_progress: int = Field(ge=0, le=100, description="Rounded mean of the three percentages")
    is_complete: bool = Field(description="True when overall_progress is 100")


class ReviewStats(BaseModel):
    total_scheduled: int = Field(ge=0)
    due_now: int = Field(ge=0)
    due_today: int = Field(ge=0, description="Due before the end of the current UTC day")
    reviewed_today: int = Field(ge=0)
    reviewed_this_week: int = Field(ge=0, description="Reviews in the last 7 days")
    average_recall: float = Field(ge=0.0, le=1.0, description="Mean recall outcome over the last 7 days")


class BadgeCategory(str, Enum):
    STREAK = 'streak'
    WORDS = 'words'
    TIME = 'time'
    ACCURACY = 'accuracy'
    MILESTONE = 'milestone'


class Badge(BaseModel):
    """
    An achievement the learner has earned.

    Example:
    {
        "badge_id": "streak_7",
        "name": "Week Warrior",
        "description": "Studied for 7 days in a row",
        "icon": "⚡",
        "category": "streak",
        "earned_on": "2024-01-07"
    }
    """
    badge_id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    earned_on: date = Field(description="First day the badge's condition held")


class BadgeStats(BaseModel):
    total: int = Field(ge=0)
    by_category: Dict[BadgeCategory, int] = Field(description="Earned badges per category, every category present")
    recent_badges: List[Badge] = Field(description="Up to five most recently earned, newest first")
    badges: List[Badge] = Field(description="All earned badges in the order they were earned")
