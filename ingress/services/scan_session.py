# services/scan_session.py
"""
One scanner device's live session.

The feed is paused from the moment a scan is accepted until the operator
acknowledges the result, so a code left under the lens cannot queue up
more redemption attempts.
"""

import logging
import threading

from ingress.services.redemption_service import RedemptionResult, DenialReason

logger = logging.getLogger('scan_session')


class ScanState:
    IDLE = 'idle'
    NO_ACTIVE_EVENT = 'no_active_event'
    SCANNING = 'scanning'
    PAUSED = 'paused'


class ScanSession:
    """Drives debounce, pause and redemption for one scanner."""

    def __init__(self, redemption_service, selector, debouncer):
        self.redemption_service = redemption_service
        self.selector = selector
        self.debouncer = debouncer
        self.event = None
        self.active_events = []
        self.state = ScanState.IDLE
        self.last_result = None
        self._lock = threading.Lock()

    @property
    def can_scan(self):
        return self.state == ScanState.SCANNING

    def start(self, active_events):
        """
        Bind to an event and start accepting scans.

        Returns:
            The bound event, or None when no event is active (the camera
            should not be started)
        """
        self.active_events = list(active_events)
        self.event = self.selector.resolve(self.active_events)
        if self.event is None:
            self.state = ScanState.NO_ACTIVE_EVENT
            logger.info("Scan session not started: no active event")
            return None

        self.state = ScanState.SCANNING
        logger.info(f"Scan session started for event {self.event.id} ({self.event.name})")
        return self.event

    def switch_event(self, event_id):
        """Bind to a different active event; the choice is remembered."""
        self.event = self.selector.select(event_id, self.active_events)
        self.debouncer.reset()
        if self.state != ScanState.PAUSED:
            self.state = ScanState.SCANNING
        return self.event

    def handle_decoded(self, decoded_text, now=None):
        """
        Handle one decode callback from the camera.

        Returns:
            RedemptionResult, or None when the callback was ignored (paused,
            not started, or a repeat inside the debounce window)
        """
        with self._lock:
            if self.state == ScanState.NO_ACTIVE_EVENT:
                return RedemptionResult.deny(
                    DenialReason.NO_ACTIVE_EVENT,
                    'There are no events currently marked as active.'
                )
            if self.state != ScanState.SCANNING:
                return None
            if not self.debouncer.should_process(decoded_text, now):
                return None
            self.state = ScanState.PAUSED
            event = self.event

        result = self.redemption_service.redeem_raw(decoded_text, event.id, event.name)
        self.last_result = result
        return result

    def acknowledge(self):
        """Operator dismissed the result; resume the feed."""
        with self._lock:
            if self.state == ScanState.PAUSED:
                self.state = ScanState.SCANNING
            self.last_result = None
