from models import db
from datetime import datetime, timezone


def _utc_now():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ScheduleEntry(db.Model):
    """ScheduleEntry model - review schedule state for one (learner, item) pair"""
    __tablename__ = 'schedule_entries'

    id = db.Column(db.Integer, primary_key=True)

    learner_id = db.Column(db.Integer, db.ForeignKey('learners.id'), nullable=False)

    # Word text (lower-cased) or lesson path
    item_key = db.Column(db.String(500), nullable=False)

    # word, lesson
    item_kind = db.Column(db.String(20), nullable=False, default='word')

    # 0=Wait, 1=Easy, 2=Medium, 3=Hard
    difficulty = db.Column(db.Integer, nullable=False, default=0)

    review_count = db.Column(db.Integer, nullable=False, default=0)

    last_reviewed_at = db.Column(db.DateTime)
    next_review_at = db.Column(db.DateTime, nullable=False)

    # Append-only list of {"at": "<iso>", "outcome": 0.0-1.0}
    recall_history = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime, default=_utc_now)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now)

    # Relationships
    learner = db.relationship('Learner', back_populates='schedule_entries')

    # One entry per learner and item (a word and a lesson may share a key); due queries scan by (learner_id, next_review_at)
    __table_args__ = (
        db.UniqueConstraint('learner_id', 'item_kind', 'item_key', name='uq_learner_item'),
        db.Index('idx_learner_next_review', 'learner_id', 'next_review_at'),
        db.Index('idx_next_review', 'next_review_at'),
    )

    def to_dict(self):
        return {
            'item_key': self.item_key,
            'item_kind': self.item_kind,
            'difficulty': self.difficulty,
            'review_count': self.review_count,
            'last_reviewed_at': _isoformat(self.last_reviewed_at),
            'next_review_at': _isoformat(self.next_review_at),
            'recall_history': list(self.recall_history or []),
        }

    def __repr__(self):
        return (
            f'<ScheduleEntry learner_id={self.learner_id} item_key={self.item_key} '
            f'difficulty={self.difficulty} next_review_at={self.next_review_at}>'
        )


def _isoformat(value):
    # Stored timestamps are naive UTC
    return value.isoformat() + 'Z' if value else None
