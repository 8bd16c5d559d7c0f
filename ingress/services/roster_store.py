# services/roster_store.py
"""
Participant storage for event rosters.

All writes to a participant's check-in state go through
RosterStore.check_in, which performs the read-check-write as one
conditional UPDATE so that concurrent scanners cannot both admit the same
participant.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import select, update, func, case
from sqlalchemy.exc import OperationalError

from ingress.exceptions import TransientStoreFailure
from ingress.extensions import db
from ingress.models.participant import Participant

logger = logging.getLogger('roster_store')


class CheckInStatus:
    """Outcome of the check-in transaction."""
    COMMITTED = 'committed'
    ALREADY_CHECKED_IN = 'already_checked_in'
    NOT_FOUND = 'not_found'


@dataclass
class TransactionResult:
    status: str
    participant: Optional[dict] = None

    @property
    def committed(self):
        return self.status == CheckInStatus.COMMITTED


def _snapshot(participant):
    data = participant.identity()
    data['checked_in'] = participant.checked_in
    data['checked_in_at'] = participant.checked_in_at.isoformat() if participant.checked_in_at else None
    return data


class RosterStore:
    """SQL-backed roster store scoped by event."""

    def __init__(self, session=None, max_retries=3, retry_delay=0.2):
        self.session = session or db.session
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

    @classmethod
    def from_config(cls, config=None):
        config = config or current_app.config
        return cls(
            max_retries=config.get('REDEMPTION_MAX_RETRIES', 3),
            retry_delay=config.get('REDEMPTION_RETRY_DELAY', 0.2)
        )

    def _select_participant(self, event_id, participant_id):
        stmt = (
            select(Participant)
            .where(Participant.event_id == event_id, Participant.id == participant_id)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def get_participant(self, event_id, participant_id):
        """
        Point lookup by (event_id, participant_id).

        The read transaction is closed before returning so the caller never
        holds a read lock into the check-in transaction.

        Returns:
            dict: Participant snapshot, or None if absent
        """
        try:
            participant = self._select_participant(event_id, participant_id)
            snapshot = _snapshot(participant) if participant else None
            self.session.commit()
            return snapshot
        except OperationalError as e:
            self.session.rollback()
            logger.error(f"Participant lookup failed for {event_id}/{participant_id}: {str(e)}")
            raise TransientStoreFailure(str(e))

    def check_in(self, event_id, participant_id):
        """
        Atomically mark a participant as checked in.

        The checked_in flag is tested by the UPDATE itself, so the decision is
        made against the row as it is at commit time. Lock timeouts and dropped
        connections are retried; a participant that is already checked in is
        a final answer and is returned immediately.

        Returns:
            TransactionResult

        Raises:
            TransientStoreFailure: If every attempt hit a storage error
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                return self._check_in_once(event_id, participant_id)
            except OperationalError as e:
                self.session.rollback()
                logger.warning(
                    f"Check-in transaction conflict for {event_id}/{participant_id} "
                    f"(attempt {attempt}/{self.max_retries}): {str(e)}"
                )
                if attempt == self.max_retries:
                    raise TransientStoreFailure(str(e))
                time.sleep(self.retry_delay * attempt)

    def _check_in_once(self, event_id, participant_id):
        stmt = (
            update(Participant)
            .where(
                Participant.event_id == event_id,
                Participant.id == participant_id,
                Participant.checked_in.is_(False)
            )
            .values(checked_in=True, checked_in_at=func.now(), updated_at=datetime.now())
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)

        if result.rowcount == 1:
            participant = self._select_participant(event_id, participant_id)
            snapshot = _snapshot(participant)
            self.session.commit()
            return TransactionResult(CheckInStatus.COMMITTED, snapshot)

        # Nothing updated: find out why, inside the same transaction
        participant = self._select_participant(event_id, participant_id)
        snapshot = _snapshot(participant) if participant else None
        self.session.rollback()

        if snapshot is None:
            return TransactionResult(CheckInStatus.NOT_FOUND)
        return TransactionResult(CheckInStatus.ALREADY_CHECKED_IN, snapshot)

    def bulk_insert(self, event_id, rows):
        """
        Insert a batch of new participants in one transaction.

        Args:
            event_id: Owning event id
            rows: Iterable of dicts with name, enrollment and email

        Returns:
            list: Created Participant instances
        """
        participants = [
            Participant(
                event_id=event_id,
                name=row['name'],
                enrollment=row['enrollment'],
                email=row.get('email', ''),
                checked_in=False,
                checked_in_at=None
            )
            for row in rows
        ]
        try:
            self.session.add_all(participants)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return participants

    def list_participants(self, event_id, checked_in=None):
        """List an event's participants, oldest first."""
        stmt = select(Participant).where(Participant.event_id == event_id)
        if checked_in is not None:
            stmt = stmt.where(Participant.checked_in.is_(checked_in))
        stmt = stmt.order_by(Participant.created_at, Participant.name)
        return list(self.session.execute(stmt).scalars())

    def count_participants(self, event_id):
        """Return (total, checked_in) counts for an event."""
        total, checked_in = self.session.execute(
            select(
                func.count(Participant.id),
                func.count(case((Participant.checked_in.is_(True), 1)))
            ).where(Participant.event_id == event_id)
        ).one()
        return int(total), int(checked_in)
