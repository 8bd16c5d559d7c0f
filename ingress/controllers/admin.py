# controllers/admin.py
"""
Administration routes: events, roster import, QR codes, exports and operator accounts.
"""

import io
import logging
import os
import tempfile

from flask import Blueprint, request, jsonify, send_file
from werkzeug.utils import secure_filename

from ingress.config import Config
from ingress.models.user import Capability, RolePreset
from ingress.services.auth_service import AuthService
from ingress.services.event_service import EventService, EventError
from ingress.services.export_service import export_checked_in
from ingress.services.importer import import_roster
from ingress.services.qr_code_service import QRCodeService
from ingress.services.roster_store import RosterStore
from ingress.utils.auth import capability_required
from ingress.utils.request_data import json_body

admin_bp = Blueprint('admin', __name__)

logger = logging.getLogger('admin')


def _event_not_found():
    return jsonify({
        'success': False,
        'message': 'Event not found',
        'error_code': EventError.EVENT_NOT_FOUND
    }), 404


@admin_bp.route('/events', methods=['GET'])
@capability_required(Capability.MANAGE_EVENTS)
def list_events():
    """All events with check-in progress."""
    events = []
    for event in EventService.list_events():
        data = event.to_dict()
        data['stats'] = EventService.get_stats(event.id)
        events.append(data)
    return jsonify({'success': True, 'events': events})


@admin_bp.route('/events', methods=['POST'])
@capability_required(Capability.MANAGE_EVENTS)
def create_event():
    """Create an event. Body: name, date (YYYY-MM-DD), venue, is_active."""
    data = json_body()

    result = EventService.create_event(
        name=data.get('name'),
        date=data.get('date'),
        venue=data.get('venue'),
        is_active=data.get('is_active', True)
    )

    if not result['success']:
        status = 400 if result['error_code'] == EventError.VALIDATION_ERROR else 500
        return jsonify(result), status

    return jsonify(result), 201


@admin_bp.route('/events/<event_id>', methods=['GET'])
@capability_required(Capability.MANAGE_EVENTS)
def get_event(event_id):
    event = EventService.get_event(event_id)
    if not event:
        return _event_not_found()

    data = event.to_dict()
    data['stats'] = EventService.get_stats(event_id)
    return jsonify({'success': True, 'event': data})


@admin_bp.route('/events/<event_id>/toggle', methods=['POST'])
@capability_required(Capability.MANAGE_EVENTS)
def toggle_event(event_id):
    """Mark an event live or completed. Optional body: is_active."""
    data = json_body()

    if 'is_active' in data:
        result = EventService.set_active(event_id, bool(data['is_active']))
    else:
        result = EventService.toggle_active(event_id)

    if not result['success']:
        status = 404 if result['error_code'] == EventError.EVENT_NOT_FOUND else 500
        return jsonify(result), status

    return jsonify(result)


@admin_bp.route('/events/<event_id>/participants', methods=['GET'])
@capability_required(Capability.MANAGE_EVENTS)
def list_participants(event_id):
    """Participants with check-in status; polled by the dashboard."""
    if not EventService.get_event(event_id):
        return _event_not_found()

    participants = []
    for index, participant in enumerate(RosterStore().list_participants(event_id), start=1):
        data = participant.identity()
        data['sr_no'] = index
        data['checked_in'] = participant.checked_in
        data['checked_in_at'] = participant.checked_in_at.isoformat() if participant.checked_in_at else None
        participants.append(data)

    return jsonify({
        'success': True,
        'participants': participants,
        'stats': EventService.get_stats(event_id)
    })


@admin_bp.route('/events/<event_id>/import', methods=['POST'])
@capability_required(Capability.IMPORT_ROSTER)
def import_participants(event_id):
    """Import a roster spreadsheet sent as multipart field 'file'."""
    if not EventService.get_event(event_id):
        return _event_not_found()

    upload = request.files.get('file')
    if not upload or not upload.filename:
        return jsonify({
            'success': False,
            'message': 'No file provided',
            'error_code': 'missing_file'
        }), 400

    filename = secure_filename(upload.filename)
    if not Config.allowed_file(filename):
        return jsonify({
            'success': False,
            'message': 'Supported file types: .xlsx, .xls, .csv',
            'error_code': 'invalid_file_type'
        }), 400

    suffix = '.' + filename.rsplit('.', 1)[1].lower()
    fd, temp_path = tempfile.mkstemp(suffix=suffix)
    try:
        with os.fdopen(fd, 'wb') as f:
            upload.save(f)
        result = import_roster(event_id, temp_path)
    finally:
        os.remove(temp_path)

    if not result['success']:
        logger.warning(f"Roster import for event {event_id} from {filename} failed: {result.get('error')}")
        result['message'] = result.get('error')
        result['error_code'] = 'import_failed'
        return jsonify(result), 400

    skipped = f" (Skipped {result['skipped']} invalid rows)" if result['skipped'] else ''
    result['message'] = f"Imported {result['participants_added']} participants.{skipped}"
    return jsonify(result)


@admin_bp.route('/events/<event_id>/participants/<participant_id>/qr.png', methods=['GET'])
@capability_required(Capability.MANAGE_EVENTS)
def participant_qr(event_id, participant_id):
    result = QRCodeService.generate_for_participant(event_id, participant_id)
    if not result['success']:
        status = 404 if result['error_code'] == 'participant_not_found' else 500
        return jsonify(result), status

    return send_file(
        io.BytesIO(result['image']),
        mimetype='image/png',
        download_name=result['filename']
    )


@admin_bp.route('/events/<event_id>/qr.zip', methods=['GET'])
@capability_required(Capability.EXPORT_DATA)
def download_qr_archive(event_id):
    result = QRCodeService.build_event_archive(event_id)
    if not result['success']:
        status = 404 if result['error_code'] == 'event_not_found' else 400
        return jsonify(result), status

    return send_file(
        io.BytesIO(result['archive']),
        as_attachment=True,
        download_name=result['filename'],
        mimetype='application/zip'
    )


@admin_bp.route('/events/<event_id>/export.xlsx', methods=['GET'])
@capability_required(Capability.EXPORT_DATA)
def export_attendance(event_id):
    """Download checked-in participants as Excel."""
    if not EventService.get_event(event_id):
        return _event_not_found()

    exported = export_checked_in(event_id)
    if exported is None:
        return jsonify({
            'success': False,
            'message': 'No participants have checked in yet.',
            'error_code': 'nothing_to_export'
        }), 400

    excel_data, filename = exported
    return send_file(
        io.BytesIO(excel_data),
        as_attachment=True,
        download_name=filename,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )


@admin_bp.route('/users', methods=['POST'])
@capability_required(Capability.MANAGE_USERS)
def create_user():
    """Create an operator. Body: email, name, password, role or capabilities."""
    data = json_body()

    try:
        user = AuthService.create_user(
            email=data.get('email', ''),
            name=data.get('name', ''),
            password=data.get('password', ''),
            role=data.get('role', RolePreset.SCANNER),
            capabilities=data.get('capabilities')
        )
    except ValueError as e:
        return jsonify({'success': False, 'message': str(e), 'error_code': 'validation_error'}), 400

    return jsonify({
        'success': True,
        'message': f'Successfully created user: {user.name}',
        'user': user.to_dict()
    }), 201
