"""
Notification Sweep

Periodic job that finds every due schedule entry across all learners, groups
them per learner and hands a summary to the delivery channel. The sweep only
reads schedule state; delivery outcomes are reported but never written back.
Running it twice simply notifies twice.
"""

import logging
import math
import queue
import threading
import time
from collections import Counter, defaultdict, deque
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from services.clock import to_utc
from services.delivery import DeliveryChannel, LoggingDeliveryChannel
from services.interval_policy import Difficulty
from services.item_store import ItemStore
from services.review_models import DeliveryResult, LearnerSweepResult, ReviewSummary, SweepReport

logger = logging.getLogger(__name__)


def build_summary(learner_id: int, difficulties: List[int], seconds_per_item: int = 30) -> ReviewSummary:
    """
    Summarise a learner's due items for a notification.

    Args:
        learner_id: Recipient
        difficulties: Difficulty of each due item
        seconds_per_item: Estimated review time per item

    Returns:
        ReviewSummary with count, per-difficulty breakdown, estimated minutes
        (rounded up) and a ready-to-send title and body

    Example:
        >>> build_summary(7, [3, 2, 2]).body
        '1 Hard, 2 Medium · ~2 min'
    """
    count = len(difficulties)
    counts = Counter(Difficulty.parse(d) for d in difficulties)
    # Hard first, matching due-list ordering
    breakdown = {d.label: counts[d] for d in sorted(counts, reverse=True)}
    estimated_minutes = math.ceil(count * seconds_per_item / 60)
    has_hard = counts[Difficulty.HARD] > 0

    plural = 's' if count != 1 else ''
    if has_hard:
        verb = 'needs' if count == 1 else 'need'
        title = f"{count} review item{plural} {verb} your attention!"
    else:
        title = f"Time to review {count} item{plural}!"

    difficulty_text = ', '.join(f"{n} {label}" for label, n in breakdown.items())

    return ReviewSummary(
        learner_id=learner_id,
        due_count=count,
        difficulty_breakdown=breakdown,
        estimated_minutes=estimated_minutes,
        priority='high' if has_hard else 'normal',
        title=title,
        body=f"{difficulty_text} · ~{estimated_minutes} min"
    )


class NotificationSweep:
    """Global due-item sweep feeding a delivery channel"""

    def __init__(
        self,
        store: Optional[ItemStore] = None,
        channel: Optional[DeliveryChannel] = None,
        timeout_seconds: float = 10.0,
        max_workers: int = 4,
        seconds_per_item: int = 30
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.store = store or ItemStore(enforce_learner=False)
        self.channel = channel or LoggingDeliveryChannel()
        self.timeout_seconds = timeout_seconds
        self.max_workers = max_workers
        self.seconds_per_item = seconds_per_item

    @classmethod
    def from_config(cls, config: Mapping, channel: Optional[DeliveryChannel] = None) -> 'NotificationSweep':
        return cls(
            store=ItemStore(enforce_learner=False),
            channel=channel,
            timeout_seconds=config.get('SWEEP_DELIVERY_TIMEOUT_SECONDS', 10.0),
            max_workers=config.get('SWEEP_MAX_WORKERS', 4),
            seconds_per_item=config.get('SECONDS_PER_REVIEW_ITEM', 30)
        )

    def run(self, now: datetime) -> SweepReport:
        """
        Notify every learner who has at least one item due at `now`.

        Each learner's delivery gets its own hard timeout, so one slow
        transport call cannot hold up the rest of the sweep.

        Raises:
            StoreUnavailable: If the due query fails (nothing is sent)
        """
        started = time.monotonic()
        now = to_utc(now)

        due_entries = self.store.query_due(None, now)
        by_learner: Dict[int, List[int]] = defaultdict(list)
        for entry in due_entries:
            by_learner[entry.learner_id].append(entry.difficulty)

        logger.info(
            f"Sweep found {len(due_entries)} due items for {len(by_learner)} learners"
        )

        results: List[LearnerSweepResult] = []
        if by_learner:
            disabled = self.store.learners_with_notifications_disabled(by_learner.keys())
            summaries = []
            for learner_id in sorted(by_learner):
                if learner_id in disabled:
                    results.append(LearnerSweepResult(
                        learner_id=learner_id,
                        due_count=len(by_learner[learner_id]),
                        delivered=False,
                        reason='notifications_disabled'
                    ))
                    continue
                summaries.append(build_summary(learner_id, by_learner[learner_id], self.seconds_per_item))
            results.extend(self._deliver_all(summaries))

        results.sort(key=lambda r: r.learner_id)
        sent = sum(1 for r in results if r.delivered)
        duration_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            f"Sweep completed in {duration_ms}ms: {sent}/{len(by_learner)} notifications sent"
        )

        return SweepReport(
            items_due=len(due_entries),
            learners_with_due_items=len(by_learner),
            notifications_sent=sent,
            results=results,
            duration_ms=duration_ms
        )

    def _deliver_all(self, summaries: List[ReviewSummary]) -> List[LearnerSweepResult]:
        """
        Send every summary with at most max_workers sends in flight.

        A send that overruns its timeout is abandoned: its slot is freed for
        the next learner and its daemon thread is left to finish on its own.
        """
        workers = max(1, self.max_workers)
        pending = deque(summaries)
        finished: 'queue.Queue[_Delivery]' = queue.Queue()
        active: List[_Delivery] = []
        results = []

        while pending or active:
            while pending and len(active) < workers:
                delivery = _Delivery(pending.popleft(), self.channel, finished, self.timeout_seconds)
                delivery.start()
                active.append(delivery)

            earliest = min(d.deadline for d in active)
            try:
                done = finished.get(timeout=max(0.0, earliest - time.monotonic()))
            except queue.Empty:
                done = None

            # Abandoned sends may still report in later; only active ones count
            if done is not None and done in active:
                active.remove(done)
                results.append(self._collect(done))

            now = time.monotonic()
            for delivery in [d for d in active if d.deadline <= now]:
                active.remove(delivery)
                logger.warning(
                    f"Delivery to learner_id={delivery.summary.learner_id} timed out after {self.timeout_seconds}s"
                )
                results.append(self._result(delivery.summary, DeliveryResult(delivered=False, reason='timeout')))

        return results

    def _collect(self, delivery: '_Delivery') -> LearnerSweepResult:
        if delivery.error is not None:
            logger.error(
                f"Delivery to learner_id={delivery.summary.learner_id} failed: {str(delivery.error)}",
                exc_info=delivery.error
            )
            outcome = DeliveryResult(delivered=False, reason='send_failed')
        elif not isinstance(delivery.outcome, DeliveryResult):
            outcome = DeliveryResult(delivered=False, reason='invalid_channel_response')
        else:
            outcome = delivery.outcome

        if outcome.delivered:
            logger.info(
                f"Sent review notification to learner_id={delivery.summary.learner_id} "
                f"({delivery.summary.due_count} items)"
            )
        return self._result(delivery.summary, outcome)

    @staticmethod
    def _result(summary: ReviewSummary, outcome: DeliveryResult) -> LearnerSweepResult:
        return LearnerSweepResult(
            learner_id=summary.learner_id,
            due_count=summary.due_count,
            delivered=outcome.delivered,
            reason=outcome.reason
        )


class _Delivery:
    """One learner's send, running on its own daemon thread"""

    def __init__(self, summary: ReviewSummary, channel: DeliveryChannel, finished: 'queue.Queue', timeout_seconds: float):
        self.summary = summary
        self.channel = channel
        self.finished = finished
        self.timeout_seconds = timeout_seconds
        self.outcome = None
        self.error: Optional[BaseException] = None
        self.deadline: float = 0.0

    def start(self) -> None:
        # The clock starts when this learner's send starts, not when the sweep does
        self.deadline = time.monotonic() + self.timeout_seconds
        thread = threading.Thread(
            target=self._run,
            name=f"review-delivery-{self.summary.learner_id}",
            daemon=True,
        )
        thread.start()

    def _run(self) -> None:
        try:
            self.outcome = self.channel.send(self.summary.learner_id, self.summary)
        except Exception as e:
            self.error = e
        self.finished.put(self)
