"""Location sources and the subscription handle the core holds on them."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from app.tracking.errors import LocationErrorKind
from app.tracking.models import LocationFix

logger = logging.getLogger(__name__)

FixCallback = Callable[[LocationFix], None]
ErrorCallback = Callable[[LocationErrorKind], None]
Unsubscribe = Callable[[], None]


class LocationSource(Protocol):
    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> Unsubscribe: ...


class LocationSubscription:
    """Start/stop wrapper around a source subscription.

    ``stop`` may be called any number of times (explicit finish plus teardown);
    the underlying unsubscribe runs exactly once per ``start``.
    """

    def __init__(self, source: LocationSource):
        self.source = source
        self._unsubscribe: Unsubscribe | None = None

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def start(self, on_fix: FixCallback, on_error: ErrorCallback) -> bool:
        if self._unsubscribe is not None:
            return False
        self._unsubscribe = self.source.subscribe(on_fix, on_error)
        logger.info("Location tracking started")
        return True

    def stop(self) -> bool:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is None:
            return False
        unsubscribe()
        logger.info("Location tracking stopped")
        return True


class PushLocationSource:
    """Source fed from outside, e.g. by the HTTP live endpoints or a replay.

    Fixes pushed while nobody is subscribed are dropped.
    """

    def __init__(self):
        self._on_fix: FixCallback | None = None
        self._on_error: ErrorCallback | None = None

    @property
    def subscribed(self) -> bool:
        return self._on_fix is not None

    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> Unsubscribe:
        self._on_fix = on_fix
        self._on_error = on_error

        def unsubscribe() -> None:
            if self._on_fix is on_fix:
                self._on_fix = None
                self._on_error = None

        return unsubscribe

    def push(self, fix: LocationFix) -> bool:
        if self._on_fix is None:
            return False
        self._on_fix(fix)
        return True

    def fail(self, kind: LocationErrorKind) -> bool:
        if self._on_error is None:
            return False
        self._on_error(LocationErrorKind(kind))
        return True
