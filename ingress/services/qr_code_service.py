# services/qr_code_service.py
"""
QR Code generation service for participant check-in codes.
Renders the signed token JSON as PNG images, one per participant, and bundles
an event's codes into a ZIP archive for printing.
"""

import io
import logging
import zipfile

import qrcode
from flask import current_app

from ingress.extensions import db
from ingress.models.event import Event
from ingress.services.roster_store import RosterStore
from ingress.services.token_codec import TokenCodec
from ingress.utils.data_processing import safe_filename


class QRCodeError:
    """QR Code service error codes."""
    EVENT_NOT_FOUND = 'event_not_found'
    PARTICIPANT_NOT_FOUND = 'participant_not_found'
    NO_PARTICIPANTS = 'no_participants'
    GENERATION_FAILED = 'generation_failed'


class QRCodeService:
    """Service for generating participant QR codes."""

    @staticmethod
    def render_png(payload, box_size=None, border=None):
        """
        Render text as a PNG QR code.

        Args:
            payload: Text to encode
            box_size: Pixels per module (defaults to QR_BOX_SIZE)
            border: Quiet zone in modules (defaults to QR_BORDER)

        Returns:
            bytes: PNG image data
        """
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=box_size or current_app.config.get('QR_BOX_SIZE', 10),
            border=border if border is not None else current_app.config.get('QR_BORDER', 4),
        )
        qr.add_data(payload)
        qr.make(fit=True)

        qr_image = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        qr_image.save(buffer, format='PNG')
        return buffer.getvalue()

    @staticmethod
    def generate_for_participant(event_id, participant_id):
        """
        Generate the QR code for one participant.

        Returns:
            dict: Generation result with PNG bytes and the encoded payload
        """
        logger = logging.getLogger('qr_code_service')

        participant = RosterStore().get_participant(event_id, participant_id)
        if not participant:
            return {
                'success': False,
                'message': 'Participant not found',
                'error_code': QRCodeError.PARTICIPANT_NOT_FOUND
            }

        try:
            payload = TokenCodec.from_config(current_app.config).encode(event_id, participant_id)
            image = QRCodeService.render_png(payload)
        except Exception as e:
            logger.error(f"Error generating QR code for {event_id}/{participant_id}: {str(e)}", exc_info=True)
            return {
                'success': False,
                'message': 'Failed to generate QR code',
                'error_code': QRCodeError.GENERATION_FAILED
            }

        return {
            'success': True,
            'payload': payload,
            'image': image,
            'filename': f"{safe_filename(participant['name'])}_{safe_filename(participant['enrollment'])}.png",
            'participant': participant
        }

    @staticmethod
    def build_event_archive(event_id):
        """
        Bundle QR codes for every participant of an event into a ZIP file.

        Files are named <name>_<enrollment>.png inside a folder named after
        the event.

        Returns:
            dict: Result with archive bytes, filename and count
        """
        logger = logging.getLogger('qr_code_service')

        event = db.session.get(Event, event_id)
        if not event:
            return {
                'success': False,
                'message': 'Event not found',
                'error_code': QRCodeError.EVENT_NOT_FOUND
            }

        participants = RosterStore().list_participants(event_id)
        if not participants:
            return {
                'success': False,
                'message': 'No participants to generate QR codes for',
                'error_code': QRCodeError.NO_PARTICIPANTS
            }

        codec = TokenCodec.from_config(current_app.config)
        folder = safe_filename(event.name, fallback='Participants_QRs')

        try:
            buffer = io.BytesIO()
            used_names = set()
            with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
                for participant in participants:
                    payload = codec.encode(event_id, participant.id)
                    filename = f"{safe_filename(participant.name)}_{safe_filename(participant.enrollment)}.png"
                    # Same name and enrollment twice in a roster must not overwrite
                    if filename in used_names:
                        filename = f"{filename[:-4]}_{participant.id[:8]}.png"
                    used_names.add(filename)
                    archive.writestr(f"{folder}/{filename}", QRCodeService.render_png(payload, box_size=8, border=1))
        except Exception as e:
            logger.error(f"Error building QR archive for event {event_id}: {str(e)}", exc_info=True)
            return {
                'success': False,
                'message': 'Failed to generate ZIP',
                'error_code': QRCodeError.GENERATION_FAILED
            }

        logger.info(f"Built QR archive for event {event_id} with {len(participants)} codes")
        return {
            'success': True,
            'archive': buffer.getvalue(),
            'filename': f"{safe_filename(event.name)}_QRs.zip",
            'count': len(participants)
        }
