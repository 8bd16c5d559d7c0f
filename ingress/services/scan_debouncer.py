# services/scan_debouncer.py
"""
Duplicate-scan suppression.

A camera pointed at one code reports it many times per second. Only the
first report inside the window is allowed through to redemption.
"""

import threading
import time

DEFAULT_WINDOW_MS = 3000


def now_ms():
    return int(time.monotonic() * 1000)


class ScanDebouncer:
    """Suppresses repeats of the same raw scan text inside a time window."""

    def __init__(self, window_ms=DEFAULT_WINDOW_MS):
        self.window_ms = window_ms
        self._last_text = None
        self._last_seen = None
        self._lock = threading.Lock()

    def should_process(self, decoded_text, now=None):
        """
        Decide whether a decoded scan should be redeemed.

        Comparison is on the raw text, so two different unreadable payloads
        are never treated as the same scan. The check and the update happen
        under one lock so two callbacks for the same frame cannot both pass.

        Args:
            decoded_text: Raw text from the QR decoder
            now: Timestamp in milliseconds (defaults to a monotonic clock)

        Returns:
            bool: False if the scan is a repeat inside the window
        """
        if now is None:
            now = now_ms()

        with self._lock:
            if (self._last_text is not None
                    and self._last_text == decoded_text
                    and now - self._last_seen < self.window_ms):
                return False

            self._last_text = decoded_text
            self._last_seen = now
            return True

    def reset(self):
        with self._lock:
            self._last_text = None
            self._last_seen = None


class DebouncerRegistry:
    """One debouncer per scanner device, for scans arriving over HTTP."""

    def __init__(self, window_ms=DEFAULT_WINDOW_MS, max_devices=1000):
        self.window_ms = window_ms
        self.max_devices = max_devices
        self._debouncers = {}
        self._lock = threading.Lock()

    def for_device(self, device_id):
        with self._lock:
            debouncer = self._debouncers.get(device_id)
            if debouncer is None:
                if len(self._debouncers) >= self.max_devices:
                    # Drop the oldest device; dicts keep insertion order
                    self._debouncers.pop(next(iter(self._debouncers)))
                debouncer = ScanDebouncer(self.window_ms)
                self._debouncers[device_id] = debouncer
            return debouncer
