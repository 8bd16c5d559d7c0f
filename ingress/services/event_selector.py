# services/event_selector.py
"""
Binds a scan session to one active event.

When several events are live at once the operator's last choice is
remembered on the scanner side (browser session cookie or a file on the
scanning device) and reused while that event stays active.
"""

import json
import logging
import os

from flask import session as flask_session

from ingress.exceptions import EventNotActive

logger = logging.getLogger('event_selector')

SESSION_KEY = 'scanner_event_id'


class SessionPreferenceStore:
    """Remembers the chosen event in the Flask session cookie."""

    def __init__(self, key=SESSION_KEY):
        self.key = key

    def load(self):
        return flask_session.get(self.key)

    def save(self, event_id):
        flask_session[self.key] = event_id
        flask_session.modified = True


class FilePreferenceStore:
    """Remembers the chosen event in a small JSON file on the scanning device."""

    def __init__(self, path):
        self.path = path

    def load(self):
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return json.load(f).get('event_id')
        except FileNotFoundError:
            return None
        except (ValueError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable scanner preference file {self.path}: {e}")
            return None

    def save(self, event_id):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump({'event_id': event_id}, f)


class MemoryPreferenceStore:
    """Keeps the choice for the lifetime of the process."""

    def __init__(self, event_id=None):
        self.event_id = event_id

    def load(self):
        return self.event_id

    def save(self, event_id):
        self.event_id = event_id


class EventSelector:
    """Chooses which active event a scan session redeems against."""

    def __init__(self, store):
        self.store = store

    def resolve(self, active_events):
        """
        Pick the event for a new scan session.

        Args:
            active_events: Active events in fetch order

        Returns:
            The remembered event if it is still active, else the first active
            event, else None when nothing is live
        """
        active_events = list(active_events)
        if not active_events:
            return None

        remembered = self.store.load()
        if remembered:
            for event in active_events:
                if event.id == remembered:
                    return event
            logger.info(f"Remembered event {remembered} is no longer active, using first active event")

        return active_events[0]

    def select(self, event_id, active_events):
        """
        Switch to another active event and remember the choice.

        Raises:
            EventNotActive: If the event is not in the active set
        """
        for event in active_events:
            if event.id == event_id:
                self.store.save(event_id)
                logger.info(f"Scanner bound to event {event_id}")
                return event
        raise EventNotActive(event_id)
