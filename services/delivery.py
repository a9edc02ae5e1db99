"""
Delivery Channels

Transport used by the notification sweep to tell a learner about due reviews.
Push and email transports live outside this service; they plug in by
subclassing DeliveryChannel. Retries and rate limiting are the channel's job.
"""

import logging
from abc import ABC, abstractmethod

from services.review_models import DeliveryResult, ReviewSummary

logger = logging.getLogger(__name__)


class DeliveryChannel(ABC):
    """Abstract base class for notification transports"""

    @abstractmethod
    def send(self, learner_id: int, summary: ReviewSummary) -> DeliveryResult:
        """
        Deliver a due-review summary to one learner.

        Implementations report failure through DeliveryResult(delivered=False,
        reason=...) or by raising; the sweep treats both as a failed delivery.
        """
        pass


class LoggingDeliveryChannel(DeliveryChannel):
    """Writes notifications to the log instead of sending them"""

    def send(self, learner_id: int, summary: ReviewSummary) -> DeliveryResult:
        logger.info(
            f"[notification] learner_id={learner_id} priority={summary.priority} "
            f"title={summary.title!r} body={summary.body!r}"
        )
        return DeliveryResult(delivered=True)
