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
Certification Gatekeeper.

Decides whether the certified reference identity may replace the real one for
attestation-sensitive callers, and whether key attestation must be blocked.
"""

import threading
import time
import traceback
from typing import Callable, Dict, Iterable, Optional

from coreason_props.applier import Applier
from coreason_props.catalog import get_build_id, get_device_name
from coreason_props.context import CallerState
from coreason_props.exceptions import KeyAttestationBlockedError
from coreason_props.platform.interfaces import ForegroundTaskObserver, ProcessIdentitySource, Subscription
from coreason_props.schemas import (
    ApplyResult,
    CertifiedBuildProperties,
    ComponentName,
    FieldValue,
    GatekeeperState,
    IdentityField,
)
from coreason_props.utils.logger import logger

ACCOUNT_LINKING_ACTIVITY = ComponentName(
    package="com.google.android.gms",
    class_name="com.google.android.gms.auth.uiflows.minutemaid.MinuteMaidActivity",
)

# Process name fragments of contexts able to request attestation
ATTESTATION_PROCESS_MARKERS = ("unstable", "pixelmigrate", "instrumentation")

SAFETY_LIBRARY_MARKER = "droidguard"


def resolve_certified_fields(props: CertifiedBuildProperties) -> Dict[IdentityField, FieldValue]:
    """
    Resolve the configured certified values into a field set.

    Empty PRODUCT/DEVICE/BRAND/ID fall back to values parsed from the configured
    fingerprint; empty TYPE/TAGS fall back to "user"/"release-keys". SECURITY_PATCH is
    only set when configured and INITIAL_SDK_INT only when it is all digits. Other
    empty values are left out.
    """
    fingerprint = props.fingerprint
    fields: Dict[IdentityField, FieldValue] = {
        IdentityField.PRODUCT: props.product or get_device_name(fingerprint),
        IdentityField.DEVICE: props.device or get_device_name(fingerprint),
    }
    if props.manufacturer:
        fields[IdentityField.MANUFACTURER] = props.manufacturer
    fields[IdentityField.BRAND] = props.brand or fingerprint.split("/")[0]
    if props.model:
        fields[IdentityField.MODEL] = props.model
    if fingerprint:
        fields[IdentityField.FINGERPRINT] = fingerprint
    if props.security_patch:
        fields[IdentityField.SECURITY_PATCH] = props.security_patch
    if props.initial_sdk.isdigit():
        fields[IdentityField.INITIAL_SDK_INT] = int(props.initial_sdk)
    fields[IdentityField.ID] = props.build_id or get_build_id(fingerprint)
    fields[IdentityField.TYPE] = props.type or "user"
    fields[IdentityField.TAGS] = props.tags or "release-keys"
    return {field: value for field, value in fields.items() if value != ""}


class GatekeeperSession:
    """
    One certification probe: Idle -> Probing -> Certified | Declined.

    `on_foreground_changed` may run on the observer's notifier thread; every state
    transition happens under the session lock. Platform calls are made outside it.
    The subscription is handed to `release` when the session ends; without one it is
    cancelled directly.
    """

    def __init__(
        self,
        is_activity_on_top: Callable[[], bool],
        release: Optional[Callable[[Subscription], None]] = None,
    ) -> None:
        self._is_activity_on_top = is_activity_on_top
        self._release = release
        self._lock = threading.Lock()
        self._state = GatekeeperState.IDLE
        self._subscription: Optional[Subscription] = None
        self.was_on_top: Optional[bool] = None

    @property
    def state(self) -> GatekeeperState:
        with self._lock:
            return self._state

    def begin(self, was_on_top: bool) -> None:
        with self._lock:
            if self._state is not GatekeeperState.IDLE:
                raise RuntimeError(f"Cannot start probing from state {self._state.value}")
            self.was_on_top = was_on_top
            self._state = GatekeeperState.PROBING

    def attach(self, subscription: Subscription) -> None:
        """Hold the foreground subscription, releasing it if the session already ended."""
        with self._lock:
            self._subscription = subscription
            ended = self._state is GatekeeperState.DECLINED
        if ended:
            self._release_subscription(subscription)

    def on_foreground_changed(self) -> None:
        if self.state is not GatekeeperState.PROBING:
            return
        is_now = self._is_activity_on_top()
        with self._lock:
            if self._state is not GatekeeperState.PROBING or is_now == self.was_on_top:
                return
            logger.info(f"Account linking activity changed: is_now={is_now}, was={self.was_on_top}. Declining.")
            self._state = GatekeeperState.DECLINED
            subscription = self._subscription
        if subscription is not None:
            self._release_subscription(subscription)

    def conclude(self) -> GatekeeperState:
        """
        Finish the probe. A session still probing becomes Certified.

        The subscription is released in every case.
        """
        with self._lock:
            if self._state is GatekeeperState.PROBING:
                self._state = GatekeeperState.CERTIFIED
            state = self._state
            subscription = self._subscription
        if subscription is not None:
            self._release_subscription(subscription)
        return state

    def _release_subscription(self, subscription: Subscription) -> None:
        if self._release is None:
            subscription.cancel()
        else:
            self._release(subscription)


class CertificationGatekeeper:
    """
    Guards substitution of the certified identity for attestation-sensitive callers.

    Every check starts a fresh session; Certified and Declined are answers for that
    check only.
    """

    def __init__(
        self,
        applier: Applier,
        observer: ForegroundTaskObserver,
        process: ProcessIdentitySource,
        certified: CertifiedBuildProperties,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.applier = applier
        self.observer = observer
        self.process = process
        self.certified = certified
        self._clock = clock
        self.last_session: Optional[GatekeeperSession] = None

    def is_account_linking_on_top(self) -> bool:
        try:
            top = self.observer.current_top_activity()
        except Exception as e:
            logger.error(f"Unable to get top activity: {e}")
            return False
        return ComponentName.unflatten(top) == ACCOUNT_LINKING_ACTIVITY

    def is_attestation_context(self) -> bool:
        process_name = self.process.current_process_name().lower()
        return any(marker in process_name for marker in ATTESTATION_PROCESS_MARKERS)

    def apply_certified_profile(self) -> Optional[ApplyResult]:
        """Write the certified identity. No-op when nothing is configured."""
        if self.certified.is_empty:
            logger.debug("No certified build properties configured, skipping")
            return None
        return self.applier.apply(resolve_certified_fields(self.certified))

    def check(self, caller_state: CallerState) -> GatekeeperState:
        """
        Run one certification probe.

        Args:
            caller_state: The process caller state.

        Returns:
            GatekeeperState: CERTIFIED or DECLINED.
        """
        if not caller_state.is_gms or not self.is_attestation_context():
            return GatekeeperState.DECLINED

        session = GatekeeperSession(self.is_account_linking_on_top, release=self.observer.unsubscribe)
        self.last_session = session

        self.applier.set_field(IdentityField.TIME, int(self._clock() * 1000))

        was = self.is_account_linking_on_top()
        session.begin(was)
        if not was:
            self.apply_certified_profile()

        try:
            subscription = self.observer.subscribe(session.on_foreground_changed)
        except Exception as e:
            logger.exception(f"Failed to register task stack listener: {e}")
            self.apply_certified_profile()
        else:
            session.attach(subscription)

        return session.conclude()

    def should_certify(self, caller_state: CallerState) -> bool:
        return self.check(caller_state) is GatekeeperState.CERTIFIED

    def is_caller_safety_library(self, caller_state: CallerState, stack: Iterable[str]) -> bool:
        return caller_state.is_gms and any(SAFETY_LIBRARY_MARKER in frame.lower() for frame in stack)

    def on_engine_get_certificate_chain(self, caller_state: CallerState, stack: Optional[Iterable[str]] = None) -> None:
        """
        Block hardware key attestation for certified safety/store callers.

        Args:
            caller_state: The process caller state.
            stack: Frame descriptions of the current call stack. Defaults to the live stack.

        Raises:
            KeyAttestationBlockedError: If the attestation call must be halted.
        """
        if stack is None:
            stack = [f"{frame.filename}:{frame.name}" for frame in traceback.extract_stack()]
        if (
            (self.is_caller_safety_library(caller_state, stack) or caller_state.is_store)
            and not caller_state.is_setup_wizard
            and self.should_certify(caller_state)
        ):
            logger.warning(f"Blocked key attestation is_gms={caller_state.is_gms} is_store={caller_state.is_store}")
            raise KeyAttestationBlockedError("Key attestation is blocked for certified callers")
