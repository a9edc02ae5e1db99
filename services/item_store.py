"""
Item Store - durable schedule entries backed by SQLAlchemy.

The store never commits on its own; writes are grouped by callers inside
`atomic()` so that a review, its activity event and its schedule update land
in one transaction. Any SQLAlchemy failure surfaces as StoreUnavailable.
"""

import functools
import logging
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.learner import Learner
from models.schedule_entry import ScheduleEntry
from services.errors import NotFound, StoreUnavailable

logger = logging.getLogger(__name__)


class ItemKind(str, Enum):
    """Kinds of schedulable learning items"""
    WORD = 'word'
    LESSON = 'lesson'


def normalize_item_key(item_key: str, item_kind: ItemKind = ItemKind.WORD) -> str:
    """
    Canonical form of an item key.

    Words are case-insensitive ('Lucid' and 'lucid' are the same entry);
    lesson paths only lose surrounding whitespace.

    Raises:
        ValueError: If item_key is empty
    """
    if not isinstance(item_key, str) or not item_key.strip():
        raise ValueError("item_key must be a non-empty string")
    key = item_key.strip()
    if ItemKind(item_kind) == ItemKind.WORD:
        key = key.lower()
    return key


@contextmanager
def atomic():
    """
    Commit everything written inside the block, or roll it all back.

    SQLAlchemy errors are converted to StoreUnavailable; other exceptions
    (validation errors, NotFound) propagate unchanged after rollback.
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Store transaction failed: {str(e)}", exc_info=True)
        raise StoreUnavailable(f"Schedule store unavailable: {str(e)}") from e
    except Exception:
        db.session.rollback()
        raise


def translate_store_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Store read failed in {func.__name__}: {str(e)}", exc_info=True)
            raise StoreUnavailable(f"Schedule store unavailable: {str(e)}") from e
    return wrapper


class ItemStore:
    """Reads and writes ScheduleEntry rows"""

    def __init__(self, enforce_learner: bool = True):
        self.enforce_learner = enforce_learner

    @translate_store_errors
    def ensure_learner(self, learner_id: int) -> None:
        """
        Raises:
            NotFound: If learner enforcement is on and the learner does not exist
        """
        if not self.enforce_learner:
            return
        if db.session.get(Learner, learner_id) is None:
            logger.warning(f"Unknown learner_id={learner_id}")
            raise NotFound(f"Learner {learner_id} not found")

    @translate_store_errors
    def get(
        self,
        learner_id: int,
        item_key: str,
        item_kind: ItemKind = ItemKind.WORD,
        for_update: bool = False
    ) -> Optional[ScheduleEntry]:
        """
        Fetch one entry. Words and lessons are separate items even when their
        keys match.

        With for_update=True the row is locked until the surrounding
        transaction ends (ignored by backends without row locks, e.g. SQLite).
        """
        query = ScheduleEntry.query.filter_by(
            learner_id=learner_id,
            item_kind=ItemKind(item_kind).value,
            item_key=item_key
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    @translate_store_errors
    def get_many(
        self,
        learner_id: int,
        item_keys: Iterable[str],
        item_kind: ItemKind = ItemKind.WORD
    ) -> List[ScheduleEntry]:
        keys = list(item_keys)
        if not keys:
            return []
        return ScheduleEntry.query.filter(
            ScheduleEntry.learner_id == learner_id,
            ScheduleEntry.item_kind == ItemKind(item_kind).value,
            ScheduleEntry.item_key.in_(keys)
        ).all()

    @translate_store_errors
    def list_for_learner(self, learner_id: int) -> List[ScheduleEntry]:
        return ScheduleEntry.query.filter_by(learner_id=learner_id).order_by(
            ScheduleEntry.next_review_at.asc(),
            ScheduleEntry.item_key.asc(),
            ScheduleEntry.item_kind.asc()
        ).all()

    @translate_store_errors
    def upsert(self, entry: ScheduleEntry) -> ScheduleEntry:
        """Stage a new or modified entry and flush it inside the current transaction"""
        db.session.add(entry)
        db.session.flush()
        return entry

    @translate_store_errors
    def delete(self, learner_id: int, item_key: str, item_kind: ItemKind = ItemKind.WORD) -> bool:
        """Delete an entry. Returns False when there was nothing to delete."""
        deleted = ScheduleEntry.query.filter_by(
            learner_id=learner_id,
            item_kind=ItemKind(item_kind).value,
            item_key=item_key
        ).delete(synchronize_session='fetch')
        db.session.flush()
        return deleted > 0

    @translate_store_errors
    def query_due(self, learner_id: Optional[int], now: datetime) -> List[ScheduleEntry]:
        """
        Entries with next_review_at <= now.

        learner_id=None queries across all learners (used by the notification
        sweep). Ordering: difficulty descending (Hard first), then
        next_review_at ascending (longest overdue first), then item_key so
        repeated reads return identical lists.
        """
        query = ScheduleEntry.query.filter(ScheduleEntry.next_review_at <= now)
        if learner_id is not None:
            query = query.filter(ScheduleEntry.learner_id == learner_id)
        else:
            query = query.order_by(ScheduleEntry.learner_id.asc())
        return query.order_by(
            ScheduleEntry.difficulty.desc(),
            ScheduleEntry.next_review_at.asc(),
            ScheduleEntry.item_key.asc(),
            ScheduleEntry.item_kind.asc()
        ).all()

    @translate_store_errors
    def query_upcoming(self, learner_id: int, after: datetime, until: datetime) -> List[ScheduleEntry]:
        """Entries with after < next_review_at <= until, soonest first"""
        return ScheduleEntry.query.filter(
            ScheduleEntry.learner_id == learner_id,
            ScheduleEntry.next_review_at > after,
            ScheduleEntry.next_review_at <= until
        ).order_by(
            ScheduleEntry.next_review_at.asc(),
            ScheduleEntry.item_key.asc(),
            ScheduleEntry.item_kind.asc()
        ).all()

    @translate_store_errors
    def learners_with_notifications_disabled(self, learner_ids: Iterable[int]) -> Set[int]:
        ids = list(learner_ids)
        if not ids:
            return set()
        rows = db.session.query(Learner.id).filter(
            Learner.id.in_(ids),
            Learner.review_notifications_enabled.is_(False)
        ).all()
        return {row[0] for row in rows}
