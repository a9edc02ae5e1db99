"""
Review Scheduler - the only writer of schedule state.

Records review outcomes, recomputes when each item is due again and answers
due / upcoming queries. Every entry point takes `now` from the caller; nothing
in here reads the clock.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, Optional, Union

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models.schedule_entry import ScheduleEntry
from services.activity_tracker import ActivityKind, ActivityTracker
from services.clock import end_of_day, parse_timestamp, start_of_day, to_utc
from services.errors import NotFound, StoreUnavailable
from services.interval_policy import Difficulty, IntervalPolicy
from services.item_store import ItemKind, ItemStore, atomic, normalize_item_key
from services.review_models import ReviewStats

logger = logging.getLogger(__name__)

RecallOutcome = Union[bool, float, int]


def _normalize_outcome(outcome: RecallOutcome) -> float:
    """
    Convert a recall outcome to a score in [0, 1].

    Booleans map to 1.0 / 0.0; numeric scores must already be in range.
    """
    if isinstance(outcome, bool):
        return 1.0 if outcome else 0.0
    if isinstance(outcome, (int, float)):
        score = float(outcome)
        if 0.0 <= score <= 1.0:
            return score
    raise ValueError(f"Recall outcome must be a boolean or a score between 0 and 1, got {outcome!r}")


class Scheduler:
    """Facade over the item store, interval policy and activity tracker"""

    def __init__(
        self,
        store: Optional[ItemStore] = None,
        policy: Optional[IntervalPolicy] = None,
        tracker: Optional[ActivityTracker] = None
    ):
        self.store = store or ItemStore()
        self.policy = policy or IntervalPolicy()
        self.tracker = tracker or ActivityTracker(store=self.store)

    @classmethod
    def from_config(cls, config: Mapping) -> 'Scheduler':
        store = ItemStore(enforce_learner=config.get('ENFORCE_LEARNER_EXISTS', True))
        return cls(
            store=store,
            policy=IntervalPolicy.from_config(config),
            tracker=ActivityTracker.from_config(config, store=store)
        )

    def record_review(
        self,
        learner_id: int,
        item_key: str,
        difficulty: Union[Difficulty, int, str],
        now: datetime,
        item_kind: Union[ItemKind, str] = ItemKind.WORD,
        recalled: Optional[RecallOutcome] = None
    ) -> ScheduleEntry:
        """
        Record a review outcome and reschedule the item.

        Loads the entry (creating it on first exposure), sets difficulty and
        last_reviewed_at, sets next_review_at = now + delay(difficulty),
        increments review_count and appends the recall outcome if given. One
        activity event (word-reviewed, or lesson-completed for lessons) is
        written in the same transaction.

        If the stored entry was last reviewed strictly after `now`, the later
        review keeps its difficulty and due time; this call still counts as a
        review and still logs its outcome.

        Args:
            learner_id: Owner of the entry
            item_key: Word text or lesson path
            difficulty: Wait/Easy/Medium/Hard as Difficulty, 0-3 or name
            now: Review timestamp supplied by the caller
            item_kind: 'word' or 'lesson'
            recalled: Optional boolean or 0-1 score

        Returns:
            The updated ScheduleEntry

        Raises:
            InvalidDifficulty: If difficulty is not a defined rating
            ValueError: If item_key, item_kind or recalled is invalid
            NotFound: If the learner does not exist
            StoreUnavailable: If the database fails

        Example:
            >>> entry = scheduler.record_review(1, 'lucid', 2, datetime(2024, 1, 1))
            >>> entry.next_review_at
            datetime.datetime(2024, 1, 2, 0, 0)
        """
        difficulty = Difficulty.parse(difficulty)
        item_kind = ItemKind(item_kind)
        key = normalize_item_key(item_key, item_kind)
        now = to_utc(now)
        outcome = _normalize_outcome(recalled) if recalled is not None else None
        delay = self.policy.next_delay(difficulty)

        self.store.ensure_learner(learner_id)

        for attempt in range(2):
            try:
                entry = self._apply_review(learner_id, key, item_kind, difficulty, delay, now, outcome)
                break
            except StoreUnavailable as e:
                # Another writer created the entry between our read and insert;
                # the row exists now, so one retry turns it into an update.
                if attempt == 0 and isinstance(e.__cause__, IntegrityError):
                    logger.info(f"Concurrent first review for learner_id={learner_id}, item_key={key}; retrying")
                    continue
                raise

        logger.info(
            f"Recorded review: learner_id={learner_id}, item_key={key}, "
            f"difficulty={difficulty.name}, review_count={entry.review_count}, "
            f"next_review_at={entry.next_review_at.isoformat()}"
        )
        return entry

    def _apply_review(self, learner_id, key, item_kind, difficulty, delay, now, outcome) -> ScheduleEntry:
        with atomic():
            entry = self.store.get(learner_id, key, item_kind, for_update=True)
            if entry is None:
                entry = ScheduleEntry(
                    learner_id=learner_id,
                    item_key=key,
                    item_kind=item_kind.value,
                    difficulty=Difficulty.WAIT.value,
                    review_count=0,
                    next_review_at=now,
                    recall_history=[]
                )

            if entry.last_reviewed_at is None or now >= entry.last_reviewed_at:
                entry.difficulty = difficulty.value
                entry.last_reviewed_at = now
                entry.next_review_at = now + delay
            else:
                logger.warning(
                    f"Stale review for learner_id={learner_id}, item_key={key}: "
                    f"now={now.isoformat()} < last_reviewed_at={entry.last_reviewed_at.isoformat()}; "
                    f"keeping later schedule"
                )

            entry.review_count = (entry.review_count or 0) + 1
            if outcome is not None:
                # Reassign so SQLAlchemy sees the JSON column change
                entry.recall_history = list(entry.recall_history or []) + [
                    {'at': now.isoformat() + 'Z', 'outcome': outcome}
                ]

            self.store.upsert(entry)

            kind = ActivityKind.LESSON_COMPLETED if item_kind == ItemKind.LESSON else ActivityKind.WORD_REVIEWED
            self.tracker.append_event(learner_id, kind, 1, now, now)
        return entry

    def get_entry(self, learner_id: int, item_key: str, item_kind: Union[ItemKind, str] = ItemKind.WORD) -> Optional[ScheduleEntry]:
        self.store.ensure_learner(learner_id)
        item_kind = ItemKind(item_kind)
        return self.store.get(learner_id, normalize_item_key(item_key, item_kind), item_kind)

    def get_due_items(self, learner_id: int, now: datetime) -> List[ScheduleEntry]:
        """
        Entries due at `now` (next_review_at <= now), Hard first, then longest overdue.

        Returns a snapshot; callers wanting fresh data query again.

        Raises:
            NotFound: If the learner does not exist
            StoreUnavailable: If the database fails
        """
        self.store.ensure_learner(learner_id)
        entries = self.store.query_due(learner_id, to_utc(now))
        logger.debug(f"Fetched due reviews: learner_id={learner_id}, count={len(entries)}")
        return entries

    def get_upcoming_reviews(
        self,
        learner_id: int,
        now: datetime,
        within: timedelta = timedelta(hours=24)
    ) -> List[ScheduleEntry]:
        """Entries becoming due after now and no later than now + within"""
        self.store.ensure_learner(learner_id)
        now = to_utc(now)
        return self.store.query_upcoming(learner_id, now, now + within)

    def sync_missing_schedules(
        self,
        learner_id: int,
        candidate_keys: Iterable[str],
        now: datetime,
        item_kind: Union[ItemKind, str] = ItemKind.WORD
    ) -> List[ScheduleEntry]:
        """
        Create immediately-due entries for candidates the learner has no entry for.

        Existing entries are left untouched, so running this repeatedly with
        the same candidates never duplicates or resets anything.

        Returns:
            The entries that were created (empty when nothing was missing)
        """
        item_kind = ItemKind(item_kind)
        now = to_utc(now)
        keys = []
        for raw in candidate_keys:
            key = normalize_item_key(raw, item_kind)
            if key not in keys:
                keys.append(key)

        self.store.ensure_learner(learner_id)
        if not keys:
            return []

        with atomic():
            existing = {entry.item_key for entry in self.store.get_many(learner_id, keys, item_kind)}
            created = []
            for key in keys:
                if key in existing:
                    continue
                created.append(self.store.upsert(ScheduleEntry(
                    learner_id=learner_id,
                    item_key=key,
                    item_kind=item_kind.value,
                    difficulty=Difficulty.WAIT.value,
                    review_count=0,
                    next_review_at=now,
                    recall_history=[]
                )))

        logger.info(
            f"Synced missing schedules: learner_id={learner_id}, "
            f"candidates={len(keys)}, created={len(created)}"
        )
        return created

    def uncomplete(
        self,
        learner_id: int,
        item_key: str,
        now: datetime,
        item_kind: Union[ItemKind, str] = ItemKind.WORD
    ) -> ScheduleEntry:
        """
        Throw away all schedule state for an item.

        Used to undo an accidental "mark as reviewed". The old entry (review
        count, difficulty, recall history) is deleted and a fresh never-reviewed
        entry takes its place, due at `now`.

        Raises:
            NotFound: If the learner or the entry does not exist
        """
        item_kind = ItemKind(item_kind)
        key = normalize_item_key(item_key, item_kind)
        now = to_utc(now)
        self.store.ensure_learner(learner_id)

        with atomic():
            existing = self.store.get(learner_id, key, item_kind, for_update=True)
            if existing is None:
                raise NotFound(f"No schedule entry for {item_kind.value} '{key}'")
            self.store.delete(learner_id, key, item_kind)
            entry = self.store.upsert(ScheduleEntry(
                learner_id=learner_id,
                item_key=key,
                item_kind=item_kind.value,
                difficulty=Difficulty.WAIT.value,
                review_count=0,
                last_reviewed_at=None,
                next_review_at=now,
                recall_history=[]
            ))

        logger.info(f"Reset schedule: learner_id={learner_id}, item_key={key}")
        return entry

    def get_review_stats(self, learner_id: int, now: datetime) -> ReviewStats:
        """
        Counts for the review dashboard.

        reviewed_* come from the activity log (word-reviewed and
        lesson-completed events); average_recall is the mean of recall
        outcomes recorded in the last 7 days.
        """
        self.store.ensure_learner(learner_id)
        now = to_utc(now)
        today_end = end_of_day(now.date())
        week_start = now - timedelta(days=7)

        entries = self.store.list_for_learner(learner_id)
        due_now = sum(1 for e in entries if e.next_review_at <= now)
        due_today = sum(1 for e in entries if e.next_review_at < today_end)

        review_kinds = [ActivityKind.WORD_REVIEWED, ActivityKind.LESSON_COMPLETED]
        upper = now + timedelta(microseconds=1)
        today_totals = self.tracker.sum_quantities(learner_id, start_of_day(now.date()), upper, review_kinds)
        week_totals = self.tracker.sum_quantities(learner_id, week_start, upper, review_kinds)

        outcomes = []
        for entry in entries:
            for record in entry.recall_history or []:
                if parse_timestamp(record['at']) >= week_start:
                    outcomes.append(float(record['outcome']))

        return ReviewStats(
            total_scheduled=len(entries),
            due_now=due_now,
            due_today=due_today,
            reviewed_today=sum(today_totals[k.value] for k in review_kinds),
            reviewed_this_week=sum(week_totals[k.value] for k in review_kinds),
            average_recall=round(sum(outcomes) / len(outcomes), 4) if outcomes else 0.0
        )


def get_scheduler() -> Scheduler:
    """Scheduler wired from the current Flask app's configuration"""
    return Scheduler.from_config(current_app.config)
