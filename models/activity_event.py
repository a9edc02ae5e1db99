from models import db
from datetime import datetime, timezone


class ActivityEvent(db.Model):
    """ActivityEvent model - append-only log of study actions"""
    __tablename__ = 'activity_events'

    id = db.Column(db.Integer, primary_key=True)

    learner_id = db.Column(db.Integer, db.ForeignKey('learners.id'), nullable=False)

    occurred_at = db.Column(db.DateTime, nullable=False)

    # word-reviewed, minute-studied, question-answered, lesson-completed
    kind = db.Column(db.String(30), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))

    # Relationships
    learner = db.relationship('Learner', back_populates='activity_events')

    __table_args__ = (
        db.Index('idx_learner_occurred', 'learner_id', 'occurred_at'),
    )

    def __repr__(self):
        return f'<ActivityEvent learner_id={self.learner_id} kind={self.kind} quantity={self.quantity}>'
