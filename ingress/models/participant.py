# models/participant.py
from sqlalchemy import Index

from ingress.extensions import db
from .base import BaseModel


class Participant(BaseModel):
    __tablename__ = 'participant'

    event_id = db.Column(db.String(36), db.ForeignKey('event.id'), nullable=False, index=True)

    name = db.Column(db.String(200), nullable=False)
    enrollment = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), nullable=False, default='')

    # Written only by the redemption transaction
    checked_in = db.Column(db.Boolean, default=False, nullable=False)
    checked_in_at = db.Column(db.DateTime, nullable=True)

    event = db.relationship('Event', back_populates='participants')

    __table_args__ = (
        # Point lookup used by redemption
        Index('idx_participant_event_id', 'event_id', 'id'),
        Index('idx_participant_event_checked_in', 'event_id', 'checked_in'),
        Index('idx_participant_event_enrollment', 'event_id', 'enrollment'),
    )

    def identity(self):
        """Fields shown to the scanner operator."""
        return {
            'id': self.id,
            'event_id': self.event_id,
            'name': self.name,
            'enrollment': self.enrollment,
            'email': self.email,
        }

    def __repr__(self):
        return f'<Participant {self.name} ({self.enrollment})>'
