# services/token_codec.py
"""
QR token encoding and decoding.

A token is compact JSON carrying the event id, the participant id and a
signature: {"eventId":"...","participantId":"...","signature":"..."}.
Encoding is deterministic so a lost code can be reprinted at any time.
"""

import hashlib
import hmac
import json
from dataclasses import dataclass

from ingress.exceptions import MalformedToken

SIGNATURE_MODE_HMAC = 'hmac'
SIGNATURE_MODE_LEGACY = 'legacy'

# Marker written by the first generation of printed codes
LEGACY_SIGNATURE = 'valid'


@dataclass(frozen=True)
class QRToken:
    event_id: str
    participant_id: str
    signature: str


class TokenCodec:
    """Builds and parses the text carried inside participant QR codes."""

    def __init__(self, secret=None, mode=SIGNATURE_MODE_HMAC):
        if mode not in (SIGNATURE_MODE_HMAC, SIGNATURE_MODE_LEGACY):
            raise ValueError(f"Unsupported QR signature mode: {mode}")
        if mode == SIGNATURE_MODE_HMAC and not secret:
            raise ValueError("QR_SIGNING_SECRET is required for hmac signatures")
        self.mode = mode
        self._secret = secret.encode('utf-8') if secret else b''

    @classmethod
    def from_config(cls, config):
        return cls(
            secret=config.get('QR_SIGNING_SECRET'),
            mode=config.get('QR_SIGNATURE_MODE', SIGNATURE_MODE_HMAC)
        )

    def sign(self, event_id, participant_id):
        if self.mode == SIGNATURE_MODE_LEGACY:
            return LEGACY_SIGNATURE

        # Length prefixes keep ("ab", "c") and ("a", "bc") from colliding
        message = f"{len(event_id)}:{event_id}|{len(participant_id)}:{participant_id}"
        return hmac.new(self._secret, message.encode('utf-8'), hashlib.sha256).hexdigest()

    def encode(self, event_id, participant_id):
        """
        Serialize a token for the given participant.

        Args:
            event_id: Owning event id
            participant_id: Participant id

        Returns:
            str: Compact JSON payload for the QR code
        """
        payload = {
            'eventId': event_id,
            'participantId': participant_id,
            'signature': self.sign(event_id, participant_id),
        }
        return json.dumps(payload, separators=(',', ':'))

    def decode(self, raw):
        """
        Parse scanned text back into a token.

        Only the structure is checked here. Whether the event or participant
        exists, or whether the signature is right, is decided at redemption.

        Raises:
            MalformedToken: If the text is not a token
        """
        if isinstance(raw, bytes):
            try:
                raw = raw.decode('utf-8')
            except UnicodeDecodeError:
                raise MalformedToken("payload is not UTF-8 text")

        if not isinstance(raw, str) or not raw.strip():
            raise MalformedToken("empty payload")

        try:
            data = json.loads(raw)
        except (ValueError, RecursionError):
            raise MalformedToken("payload is not JSON")

        if not isinstance(data, dict):
            raise MalformedToken("payload is not an object")

        for field in ('eventId', 'participantId'):
            value = data.get(field)
            if not isinstance(value, str) or not value:
                raise MalformedToken(f"missing {field}")
            # Lone surrogates survive json.loads but cannot be signed
            try:
                value.encode('utf-8')
            except UnicodeEncodeError:
                raise MalformedToken(f"{field} is not valid text")

        signature = data.get('signature')
        if not isinstance(signature, str):
            raise MalformedToken("missing signature")

        return QRToken(
            event_id=data['eventId'],
            participant_id=data['participantId'],
            signature=signature
        )

    def verify(self, token):
        """Check the token signature. Legacy mode accepts any value."""
        if self.mode == SIGNATURE_MODE_LEGACY:
            return True
        expected = self.sign(token.event_id, token.participant_id)
        return hmac.compare_digest(token.signature.encode('utf-8'), expected.encode('utf-8'))
