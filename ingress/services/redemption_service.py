# services/redemption_service.py
"""
Check-in redemption.

Turns a scanned QR token into a committed check-in. Each participant can be
admitted at most once, however many scanners present the same code and in
whatever order.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app

from ingress.exceptions import MalformedToken, TransientStoreFailure
from ingress.services.roster_store import RosterStore, CheckInStatus
from ingress.services.token_codec import TokenCodec

logger = logging.getLogger('redemption_service')


class DenialReason:
    """Reasons a scan does not admit the bearer."""
    MALFORMED_TOKEN = 'malformed_token'
    WRONG_EVENT = 'wrong_event'
    INVALID_SIGNATURE = 'invalid_signature'
    PARTICIPANT_NOT_FOUND = 'participant_not_found'
    ALREADY_CHECKED_IN = 'already_checked_in'
    TRANSIENT_STORE_FAILURE = 'transient_store_failure'
    NO_ACTIVE_EVENT = 'no_active_event'


@dataclass
class RedemptionResult:
    granted: bool
    message: str
    reason: Optional[str] = None
    participant: Optional[dict] = None
    event_id: Optional[str] = None
    details: dict = field(default_factory=dict)

    @classmethod
    def grant(cls, participant, event_id):
        return cls(
            granted=True,
            message='Access granted',
            participant=participant,
            event_id=event_id
        )

    @classmethod
    def deny(cls, reason, message, participant=None, event_id=None, **details):
        return cls(
            granted=False,
            message=message,
            reason=reason,
            participant=participant,
            event_id=event_id,
            details=details
        )

    def to_dict(self):
        result = {
            'success': self.granted,
            'status': 'granted' if self.granted else 'denied',
            'message': self.message,
            'participant': self.participant,
            'event_id': self.event_id,
        }
        if not self.granted:
            result['error_code'] = self.reason
        result.update(self.details)
        return result


class RedemptionService:
    """Validates tokens against the bound event and commits the check-in."""

    def __init__(self, store, codec):
        self.store = store
        self.codec = codec

    @classmethod
    def from_config(cls, config=None):
        config = config or current_app.config
        return cls(RosterStore.from_config(config), TokenCodec.from_config(config))

    def redeem_raw(self, raw_text, current_event_id, current_event_name=None):
        """Decode scanned text and redeem it."""
        try:
            token = self.codec.decode(raw_text)
        except MalformedToken as e:
            logger.warning(f"Rejected malformed QR payload for event {current_event_id}: {e.detail}")
            return RedemptionResult.deny(DenialReason.MALFORMED_TOKEN, e.message, event_id=current_event_id)

        return self.redeem(token, current_event_id, current_event_name)

    def redeem(self, token, current_event_id, current_event_name=None):
        """
        Redeem a decoded token for the event this scanner is bound to.

        Args:
            token: Decoded QRToken
            current_event_id: Event the scan session is bound to
            current_event_name: Display name of that event, for operator messages

        Returns:
            RedemptionResult: Granted with participant identity, or denied with a reason
        """
        # 1. Local checks, no store access
        if token.event_id != current_event_id:
            bound = current_event_name or current_event_id
            logger.warning(
                f"Wrong event: token for {token.event_id} scanned at {current_event_id}"
            )
            return RedemptionResult.deny(
                DenialReason.WRONG_EVENT,
                f"QR code is not valid for {bound}",
                event_id=current_event_id,
                token_event_id=token.event_id
            )

        if not self.codec.verify(token):
            logger.warning(
                f"Invalid signature on token for {token.event_id}/{token.participant_id}"
            )
            return RedemptionResult.deny(
                DenialReason.INVALID_SIGNATURE,
                'QR code signature is invalid',
                event_id=current_event_id
            )

        try:
            # 2. Point lookup
            participant = self.store.get_participant(token.event_id, token.participant_id)
            if participant is None:
                logger.warning(f"Participant not found: {token.event_id}/{token.participant_id}")
                return RedemptionResult.deny(
                    DenialReason.PARTICIPANT_NOT_FOUND,
                    'Participant not found',
                    event_id=current_event_id
                )

            # 3. Conditional transaction
            outcome = self.store.check_in(token.event_id, token.participant_id)

        except TransientStoreFailure as e:
            logger.error(f"Check-in unavailable for {token.event_id}/{token.participant_id}: {e.detail}")
            return RedemptionResult.deny(
                DenialReason.TRANSIENT_STORE_FAILURE,
                e.message,
                event_id=current_event_id
            )

        if outcome.status == CheckInStatus.COMMITTED:
            logger.info(
                f"Access granted: {outcome.participant['name']} ({outcome.participant['enrollment']}) "
                f"at event {current_event_id}"
            )
            return RedemptionResult.grant(outcome.participant, current_event_id)

        if outcome.status == CheckInStatus.ALREADY_CHECKED_IN:
            checked_in_at = outcome.participant.get('checked_in_at')
            logger.warning(
                f"Already checked in: {outcome.participant['name']} ({outcome.participant['enrollment']}) "
                f"at {checked_in_at}"
            )
            return RedemptionResult.deny(
                DenialReason.ALREADY_CHECKED_IN,
                'Already checked in!',
                participant=outcome.participant,
                event_id=current_event_id,
                checked_in_at=checked_in_at
            )

        logger.warning(f"Participant disappeared during check-in: {token.event_id}/{token.participant_id}")
        return RedemptionResult.deny(
            DenialReason.PARTICIPANT_NOT_FOUND,
            'Participant not found',
            event_id=current_event_id
        )
