# controllers/check_in.py
"""
Check-in routes for QR code scanning.
Binds the scanner to an active event, redeems scanned codes and keeps a short
history of recent scans for the operator.
"""

import logging
import uuid
from datetime import datetime

from flask import Blueprint, request, jsonify, current_app, session as flask_session

from ingress.exceptions import EventNotActive
from ingress.models.user import Capability
from ingress.services.event_selector import EventSelector, SessionPreferenceStore
from ingress.services.event_service import EventService
from ingress.services.redemption_service import RedemptionService, RedemptionResult, DenialReason
from ingress.utils.auth import capability_required, current_operator
from ingress.utils.request_data import json_body

check_in_bp = Blueprint('check_in', __name__)

logger = logging.getLogger('check_in')

DENIAL_STATUS = {
    DenialReason.MALFORMED_TOKEN: 400,
    DenialReason.INVALID_SIGNATURE: 403,
    DenialReason.PARTICIPANT_NOT_FOUND: 404,
    DenialReason.WRONG_EVENT: 409,
    DenialReason.ALREADY_CHECKED_IN: 409,
    DenialReason.NO_ACTIVE_EVENT: 409,
    DenialReason.TRANSIENT_STORE_FAILURE: 503,
}


def _selector():
    return EventSelector(SessionPreferenceStore())


def _device_id(data):
    """Scanner device id from the request, or one pinned to this browser session."""
    device_id = data.get('device_id')
    if device_id:
        return str(device_id)
    if 'scanner_device_id' not in flask_session:
        flask_session['scanner_device_id'] = str(uuid.uuid4())
    return flask_session['scanner_device_id']


@check_in_bp.route('/session', methods=['GET'])
@capability_required(Capability.SCAN)
def scan_session():
    """
    Active events and the one this scanner is bound to.
    With no active event the scanner must not start the camera.
    """
    active_events = EventService.list_active_events()
    event = _selector().resolve(active_events)

    if event is None:
        return jsonify({
            'success': True,
            'state': 'no_active_event',
            'message': 'There are no events currently marked as active.',
            'active_events': [],
            'event': None
        })

    return jsonify({
        'success': True,
        'state': 'scanning',
        'active_events': [e.to_dict() for e in active_events],
        'event': event.to_dict(),
        'stats': EventService.get_stats(event.id),
        'debounce_window_ms': current_app.config['SCAN_DEBOUNCE_WINDOW_MS']
    })


@check_in_bp.route('/select', methods=['POST'])
@capability_required(Capability.SCAN)
def select_event():
    """Bind this scanner to another active event. Body: event_id."""
    data = json_body()
    event_id = data.get('event_id')
    if not event_id:
        return jsonify({
            'success': False,
            'message': 'event_id is required',
            'error_code': 'missing_event'
        }), 400

    try:
        event = _selector().select(event_id, EventService.list_active_events())
    except EventNotActive as e:
        return jsonify({'success': False, 'message': e.message, 'error_code': e.error_code}), 400

    return jsonify({'success': True, 'event': event.to_dict()})


@check_in_bp.route('/verify', methods=['POST'])
@capability_required(Capability.SCAN)
def verify():
    """
    Redeem a scanned QR code against the bound event.
    Body: qr_data (decoded text), optional device_id.

    The duplicate-scan window is kept per worker process. Under several
    gunicorn workers a repeat can reach another worker and be redeemed,
    which then answers already_checked_in from the database instead of 202.
    """
    data = json_body()
    qr_data = data.get('qr_data')

    if not isinstance(qr_data, str) or not qr_data:
        return jsonify({
            'success': False,
            'message': 'qr_data is required',
            'error_code': 'missing_data'
        }), 400

    # Debounce before any database work
    registry = current_app.extensions['ingress_debouncers']
    if not registry.for_device(_device_id(data)).should_process(qr_data):
        return jsonify({
            'success': False,
            'status': 'ignored',
            'message': 'Duplicate scan ignored',
            'error_code': 'duplicate_scan'
        }), 202

    event = _selector().resolve(EventService.list_active_events())
    if event is None:
        result = RedemptionResult.deny(
            DenialReason.NO_ACTIVE_EVENT,
            'There are no events currently marked as active.'
        )
    else:
        result = RedemptionService.from_config().redeem_raw(qr_data, event.id, event.name)

    operator = current_operator()
    logger.info(
        f"Scan by {operator.email} at event {event.id if event else '-'}: "
        f"{'granted' if result.granted else result.reason}"
    )
    _update_recent_scans(result)

    response = result.to_dict()
    response['ui_status'] = 'success' if result.granted else 'error'
    response['ui_message'] = 'Access Granted' if result.granted else result.message

    if result.granted:
        return jsonify(response)
    return jsonify(response), DENIAL_STATUS.get(result.reason, 400)


@check_in_bp.route('/history', methods=['GET'])
@capability_required(Capability.SCAN)
def scan_history():
    return jsonify({'success': True, 'recent_scans': flask_session.get('recent_scans', [])})


@check_in_bp.route('/clear-history', methods=['POST'])
@capability_required(Capability.SCAN)
def clear_scan_history():
    """Clear recent scan history from the session."""
    flask_session['recent_scans'] = []
    logger.info("Scan history cleared")
    return jsonify({'success': True, 'message': 'Scan history cleared'})


# Helper Functions

def _update_recent_scans(result):
    """
    Update recent scans in flask session for UI display.
    """
    recent_scans = flask_session.get('recent_scans', [])

    participant = result.participant or {}
    scan_entry = {
        'timestamp': datetime.now().strftime('%H:%M:%S'),
        'name': participant.get('name', 'Unknown'),
        'enrollment': participant.get('enrollment'),
        'status': 'Granted' if result.granted else 'Denied',
        'reason': result.reason,
        'message': result.message
    }

    # Add to beginning of list and limit to 10 entries
    recent_scans.insert(0, scan_entry)
    flask_session['recent_scans'] = recent_scans[:10]
    flask_session.modified = True
