# models/event.py
from sqlalchemy import Index

from ingress.extensions import db
from .base import BaseModel


class Event(BaseModel):
    __tablename__ = 'event'

    name = db.Column(db.String(200), nullable=False)
    date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD
    venue = db.Column(db.String(200), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    participants = db.relationship('Participant', back_populates='event', lazy='dynamic')

    __table_args__ = (
        Index('idx_event_active_created', 'is_active', 'created_at'),
    )

    @property
    def status_label(self):
        return 'LIVE' if self.is_active else 'COMPLETED'

    def to_dict(self):
        result = super().to_dict()
        result['status'] = self.status_label
        return result

    def __repr__(self):
        return f'<Event {self.name} ({self.date})>'
