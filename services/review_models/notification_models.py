"""
Notification Pydantic Models

Payloads exchanged between the notification sweep and delivery channels.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ReviewSummary(BaseModel):
    """
    What a learner is told about their due items.

    Example:
    {
        "learner_id": 7,
        "due_count": 3,
        "difficulty_breakdown": {"Hard": 1, "Medium": 2},
        "estimated_minutes": 2,
        "priority": "high",
        "title": "3 review items need your attention!",
        "body": "1 Hard, 2 Medium · ~2 min"
    }
    """
    learner_id: int
    due_count: int = Field(ge=1)
    difficulty_breakdown: Dict[str, int] = Field(description="Due item count keyed by difficulty label")
    estimated_minutes: int = Field(ge=0)
    priority: str = Field(description="'high' when any Hard item is due, else 'normal'")
    title: str
    body: str


class DeliveryResult(BaseModel):
    delivered: bool
    reason: Optional[str] = Field(default=None, description="Why delivery did not happen")


class LearnerSweepResult(BaseModel):
    learner_id: int
    due_count: int
    delivered: bool
    reason: Optional[str] = None


class SweepReport(BaseModel):
    items_due: int = Field(ge=0)
    learners_with_due_items: int = Field(ge=0)
    notifications_sent: int = Field(ge=0)
    results: List[LearnerSweepResult] = Field(default_factory=list)
    duration_ms: int = Field(ge=0)
