"""Periodic position reporting for a signed-in user.

Each call to :meth:`LocationTracker.start` returns its own
:class:`TrackingHandle`; nothing is shared between sessions, so several
trackers can run side by side and each one stops only through its handle.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Tuple

import requests

from permitdesk.client import ApiError, PermitDeskClient

log = logging.getLogger("uvicorn.error")

Position = Tuple[float, float]
PositionSource = Callable[[], Optional[Position]]

DEFAULT_INTERVAL = 30.0


class TrackingHandle:
    def __init__(self, name: str):
        self.name = name
        self.reports = 0
        self.last_error: Optional[Exception] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def cancel(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the tracker is cancelled; returns whether it was."""
        return self._stop.wait(timeout)


class LocationTracker:
    def __init__(self, client: PermitDeskClient, *, interval: float = DEFAULT_INTERVAL):
        self.client = client
        self.interval = interval

    def _report(self, handle: TrackingHandle, source: PositionSource) -> None:
        try:
            position = source()
        except Exception as exc:
            handle.last_error = exc
            log.warning("Position source failed: %s", exc)
            return
        if position is None:
            return
        latitude, longitude = position
        try:
            self.client.update_location(latitude, longitude)
        except ApiError as exc:
            handle.last_error = exc
            log.warning("Location update failed: %s", exc)
            if exc.status_code in (401, 403):
                handle.cancel(timeout=None)
            return
        except requests.RequestException as exc:
            handle.last_error = exc
            log.warning("Location update failed, will retry: %s", exc)
            return
        handle.reports += 1

    def _run(self, handle: TrackingHandle, source: PositionSource) -> None:
        while not handle._stop.is_set():
            self._report(handle, source)
            if handle._stop.wait(self.interval):
                break

    def start(self, source: PositionSource, *, share: bool = True) -> TrackingHandle:
        """Begin reporting positions from ``source`` every ``interval`` seconds.

        With ``share`` set, location sharing is switched on first so admins
        see the live position.
        """
        if share:
            self.client.toggle_sharing(True)
        handle = TrackingHandle(name=f"location-tracker-{id(source):x}")
        thread = threading.Thread(target=self._run, args=(handle, source), name=handle.name, daemon=True)
        handle._thread = thread
        thread.start()
        return handle

    def stop(self, handle: TrackingHandle, *, unshare: bool = False) -> None:
        handle.cancel()
        if unshare:
            self.client.toggle_sharing(False)


__all__ = ["LocationTracker", "TrackingHandle"]
