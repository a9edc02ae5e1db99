"""
Review Pydantic Models

Structured results returned by the scheduling services:
- Progress models (StreakStats, GoalMetric, DailyGoalProgress, ReviewStats, Badge, BadgeStats)
- Notification models (ReviewSummary, DeliveryResult, LearnerSweepResult, SweepReport)
"""

from .progress_models import (
    StreakState, StreakStats, GoalMetric, DailyGoalProgress, ReviewStats,
    BadgeCategory, Badge, BadgeStats
)
from .notification_models import ReviewSummary, DeliveryResult, LearnerSweepResult, SweepReport

__all__ = [
    'StreakState',
    'StreakStats',
    'GoalMetric',
    'DailyGoalProgress',
    'ReviewStats',
    'BadgeCategory',
    'Badge',
    'BadgeStats',
    'ReviewSummary',
    'DeliveryResult',
    'LearnerSweepResult',
    'SweepReport'
]
