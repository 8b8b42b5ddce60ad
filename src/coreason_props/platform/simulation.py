# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_props

"""
Simulation Platform.

In-memory implementations of the platform collaborators for development and testing
environments where no real device runtime is available.
WARNING: DO NOT USE IN PRODUCTION.
"""

import queue
import threading
from typing import Dict, FrozenSet, List, Optional

from coreason_props.platform.interfaces import ForegroundCallback, IdentityStore
from coreason_props.schemas import FieldValue, IdentityField
from coreason_props.utils.logger import logger

DEFAULT_IDENTITY: Dict[IdentityField, FieldValue] = {
    IdentityField.BRAND: "generic",
    IdentityField.MANUFACTURER: "Generic",
    IdentityField.ID: "AP1A.240305.019",
    IdentityField.DEVICE: "generic",
    IdentityField.PRODUCT: "generic",
    IdentityField.MODEL: "Generic Device",
    IdentityField.FINGERPRINT: "generic/generic/generic:14/AP1A.240305.019/eng.build:userdebug/test-keys",
    IdentityField.TYPE: "userdebug",
    IdentityField.TAGS: "test-keys",
    IdentityField.SECURITY_PATCH: "2024-03-05",
    IdentityField.INITIAL_SDK_INT: 34,
    IdentityField.TIME: 0,
    IdentityField.INCREMENTAL: "eng.build",
}

_STOP = object()


class InMemoryIdentityStore(IdentityStore):
    """
    Identity store backed by a dict.

    Fields listed in `readonly` reject writes, mimicking platform fields that
    cannot be overridden.
    """

    def __init__(
        self,
        initial: Optional[Dict[IdentityField, FieldValue]] = None,
        readonly: FrozenSet[IdentityField] = frozenset({IdentityField.INCREMENTAL}),
    ) -> None:
        self._values: Dict[IdentityField, FieldValue] = dict(DEFAULT_IDENTITY if initial is None else initial)
        self._readonly = readonly
        self._lock = threading.Lock()
        self.writes: List[IdentityField] = []

    def get(self, field: IdentityField) -> Optional[FieldValue]:
        with self._lock:
            return self._values.get(field)

    def set(self, field: IdentityField, value: FieldValue) -> bool:
        if field in self._readonly:
            logger.debug(f"Rejected write to read-only field {field.value}")
            return False
        with self._lock:
            self._values[field] = value
            self.writes.append(field)
        return True

    def snapshot(self) -> Dict[IdentityField, FieldValue]:
        with self._lock:
            return dict(self._values)


class SimulationSubscription:
    """Subscription handle returned by SimulationForegroundObserver."""

    def __init__(self, observer: "SimulationForegroundObserver", callback: ForegroundCallback) -> None:
        self._observer = observer
        self.callback = callback
        self._active = threading.Event()
        self._active.set()

    @property
    def active(self) -> bool:
        return self._active.is_set()

    def cancel(self) -> None:
        if self._active.is_set():
            self._active.clear()
            self._observer.unsubscribe(self)


class SimulationForegroundObserver:
    """
    Foreground-task observer driven by `set_top_activity`.

    Notifications are delivered on a dedicated daemon notifier thread, so callbacks run
    concurrently with the thread that changed the foreground. Use `flush` to wait
    until every queued notification has been delivered, and `close` to stop the
    notifier thread.
    """

    def __init__(self, top_activity: Optional[str] = None) -> None:
        self._top_activity = top_activity
        self._subscriptions: List[SimulationSubscription] = []
        self._lock = threading.Lock()
        self._events: "queue.Queue[object]" = queue.Queue()
        self.fail_subscribe = False
        self._notifier = threading.Thread(target=self._run, name="foreground-notifier", daemon=True)
        self._notifier.start()

    def subscribe(self, callback: ForegroundCallback) -> SimulationSubscription:
        if self.fail_subscribe:
            raise RuntimeError("Task stack listener registration refused")
        subscription = SimulationSubscription(self, callback)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: SimulationSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        subscription.cancel()

    def current_top_activity(self) -> Optional[str]:
        with self._lock:
            return self._top_activity

    def set_top_activity(self, component: Optional[str]) -> None:
        """Change the foreground activity and queue a notification."""
        with self._lock:
            self._top_activity = component
        self._events.put(None)

    def flush(self, timeout: float = 5.0) -> None:
        """Block until all queued notifications have been delivered."""
        done = threading.Event()

        def _wait() -> None:
            self._events.join()
            done.set()

        threading.Thread(target=_wait, daemon=True).start()
        if not done.wait(timeout):
            raise TimeoutError("Foreground notifications were not delivered in time")

    def close(self, timeout: float = 5.0) -> None:
        """Stop the notifier thread after pending notifications are delivered."""
        if self._notifier.is_alive():
            self._events.put(_STOP)
            self._notifier.join(timeout)

    @property
    def running(self) -> bool:
        return self._notifier.is_alive()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _run(self) -> None:
        while True:
            event = self._events.get()
            if event is _STOP:
                self._events.task_done()
                return
            try:
                with self._lock:
                    subscribers = list(self._subscriptions)
                for subscription in subscribers:
                    if not subscription.active:
                        continue
                    try:
                        subscription.callback()
                    except Exception as e:
                        logger.exception(f"Foreground callback failed: {e}")
            finally:
                self._events.task_done()


class SimulationProcessIdentity:
    """Static process identity."""

    def __init__(
        self,
        process_name: str = "com.example.app",
        device_codename: str = "generic",
        uid_packages: Optional[Dict[int, str]] = None,
    ) -> None:
        self.process_name = process_name
        self.codename = device_codename
        self.uid_packages = dict(uid_packages or {})

    def current_process_name(self) -> str:
        return self.process_name

    def calling_package_for_uid(self, uid: int) -> Optional[str]:
        return self.uid_packages.get(uid)

    def device_codename(self) -> str:
        return self.codename
