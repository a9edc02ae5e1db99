from models import db
from datetime import datetime, timezone
from flask_login import UserMixin
from sqlalchemy.orm import validates
import re


class Learner(UserMixin, db.Model):
    """Learner model - owner of schedule entries and activity events"""
    __tablename__ = 'learners'

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String, nullable=False, unique=True, index=True)
    name = db.Column(db.String)

    # Per-learner daily goal overrides; NULL falls back to the configured default
    words_goal = db.Column(db.Integer)
    minutes_goal = db.Column(db.Integer)
    questions_goal = db.Column(db.Integer)

    review_notifications_enabled = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))

    # Relationships
    schedule_entries = db.relationship(
        'ScheduleEntry', back_populates='learner', lazy='dynamic', cascade='all, delete-orphan'
    )
    activity_events = db.relationship(
        'ActivityEvent', back_populates='learner', lazy='dynamic', cascade='all, delete-orphan'
    )

    @validates('email')
    def validate_email(self, key, email):
        if not email:
            raise ValueError('Email is required')
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(pattern, email):
            raise ValueError(f'Invalid email format: {email}')
        return email

    @validates('words_goal', 'minutes_goal', 'questions_goal')
    def validate_goal(self, key, value):
        if value is not None and value < 1:
            raise ValueError(f'{key} must be a positive integer')
        return value

    def __repr__(self):
        return f'<Learner {self.email}>'
