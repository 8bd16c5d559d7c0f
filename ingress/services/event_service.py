# services/event_service.py
"""
Event management service.
Creates events, toggles them live/completed and reports check-in progress.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ingress.extensions import db
from ingress.models.event import Event
from ingress.services.roster_store import RosterStore


class EventError:
    """Event service error codes."""
    EVENT_NOT_FOUND = 'event_not_found'
    VALIDATION_ERROR = 'validation_error'
    DATABASE_ERROR = 'database_error'


class EventService:
    """Service class for event operations."""

    @staticmethod
    def validate_event_data(name, date, venue):
        """
        Validate event fields.

        Returns:
            list: Validation error messages (empty when valid)
        """
        errors = []
        if not name or not str(name).strip():
            errors.append('Event name is required')
        if not venue or not str(venue).strip():
            errors.append('Venue is required')
        if not date:
            errors.append('Date is required')
        else:
            try:
                datetime.strptime(str(date), '%Y-%m-%d')
            except ValueError:
                errors.append('Date must be in YYYY-MM-DD format')
        return errors

    @staticmethod
    def create_event(name, date, venue, is_active=True):
        """
        Create a new event.

        Args:
            name: Event name
            date: Event date (YYYY-MM-DD)
            venue: Venue name
            is_active: Whether scanners can check people in straight away

        Returns:
            dict: Creation result with the event data
        """
        logger = logging.getLogger('event_service')

        errors = EventService.validate_event_data(name, date, venue)
        if errors:
            return {
                'success': False,
                'message': '; '.join(errors),
                'error_code': EventError.VALIDATION_ERROR,
                'errors': errors
            }

        try:
            event = Event(
                name=str(name).strip(),
                date=str(date),
                venue=str(venue).strip(),
                is_active=bool(is_active)
            )
            event.save()

            logger.info(f"Created event {event.id}: {event.name} on {event.date} at {event.venue}")
            return {
                'success': True,
                'message': 'Event created successfully',
                'event': event.to_dict()
            }

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error creating event: {str(e)}")
            return {
                'success': False,
                'message': 'Database error while creating event',
                'error_code': EventError.DATABASE_ERROR
            }

    @staticmethod
    def get_event(event_id):
        return db.session.get(Event, event_id)

    @staticmethod
    def list_events():
        """All events, newest first."""
        stmt = select(Event).order_by(Event.created_at.desc(), Event.id)
        return list(db.session.execute(stmt).scalars())

    @staticmethod
    def list_active_events():
        """Active events in creation order."""
        stmt = (
            select(Event)
            .where(Event.is_active.is_(True))
            .order_by(Event.created_at, Event.id)
        )
        return list(db.session.execute(stmt).scalars())

    @staticmethod
    def set_active(event_id, is_active):
        """
        Mark an event live or completed.

        Returns:
            dict: Update result with the event data
        """
        logger = logging.getLogger('event_service')

        try:
            event = db.session.get(Event, event_id)
            if not event:
                return {
                    'success': False,
                    'message': 'Event not found',
                    'error_code': EventError.EVENT_NOT_FOUND
                }

            event.is_active = bool(is_active)
            db.session.commit()

            logger.info(f"Event {event.id} marked {event.status_label}")
            return {
                'success': True,
                'message': f'Event marked as {event.status_label.lower()}',
                'event': event.to_dict()
            }

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error updating event {event_id}: {str(e)}")
            return {
                'success': False,
                'message': 'Database error while updating event',
                'error_code': EventError.DATABASE_ERROR
            }

    @staticmethod
    def toggle_active(event_id):
        event = db.session.get(Event, event_id)
        if not event:
            return {
                'success': False,
                'message': 'Event not found',
                'error_code': EventError.EVENT_NOT_FOUND
            }
        return EventService.set_active(event_id, not event.is_active)

    @staticmethod
    def get_stats(event_id):
        """
        Check-in progress for an event.

        Returns:
            dict: Totals and percentage, or None if the event does not exist
        """
        event = db.session.get(Event, event_id)
        if not event:
            return None

        total, checked_in = RosterStore().count_participants(event_id)
        return {
            'event_id': event_id,
            'total': total,
            'checked_in': checked_in,
            'pending': total - checked_in,
            'percentage': round(checked_in / total * 100, 1) if total else 0
        }
