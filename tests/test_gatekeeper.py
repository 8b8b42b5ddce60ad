# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_props

import threading
from typing import List, Optional
from unittest.mock import MagicMock

import pytest

from coreason_props.applier import Applier
from coreason_props.context import CallerState
from coreason_props.gatekeeper import (
    ACCOUNT_LINKING_ACTIVITY,
    CertificationGatekeeper,
    GatekeeperSession,
    resolve_certified_fields,
)
from coreason_props.platform.interfaces import ForegroundCallback
from coreason_props.platform.simulation import (
    InMemoryIdentityStore,
    SimulationForegroundObserver,
    SimulationProcessIdentity,
)
from coreason_props.schemas import CertifiedBuildProperties, GatekeeperState, IdentityField

ACCOUNT_LINKING = "com.google.android.gms/.auth.uiflows.minutemaid.MinuteMaidActivity"
CHEETAH_FINGERPRINT = "google/cheetah/cheetah:13/TQ3A.230805.001/10316531:user/release-keys"


class StubSubscription:
    def __init__(self) -> None:
        self.cancelled = False

    @property
    def active(self) -> bool:
        return not self.cancelled

    def cancel(self) -> None:
        self.cancelled = True


class FlippingObserver:
    """Observer that brings the account activity to the front as soon as someone subscribes."""

    def __init__(self) -> None:
        self.top: Optional[str] = None
        self.subscription = StubSubscription()

    def subscribe(self, callback: ForegroundCallback) -> StubSubscription:
        self.top = ACCOUNT_LINKING
        callback()
        return self.subscription

    def unsubscribe(self, subscription: StubSubscription) -> None:
        subscription.cancel()

    def current_top_activity(self) -> Optional[str]:
        return self.top


def gms_state() -> CallerState:
    state = CallerState()
    state.latch("com.google.android.gms")
    return state


@pytest.fixture
def gatekeeper(
    store: InMemoryIdentityStore,
    observer: SimulationForegroundObserver,
    certified: CertifiedBuildProperties,
) -> CertificationGatekeeper:
    return CertificationGatekeeper(
        Applier(store),
        observer,
        SimulationProcessIdentity(process_name="com.google.android.gms.unstable"),
        certified,
        clock=lambda: 1700000000.5,
    )


class TestPreconditions:
    def test_declines_without_gms(self, gatekeeper: CertificationGatekeeper, store: InMemoryIdentityStore) -> None:
        """Test that non-GMS processes are declined without probing."""
        assert gatekeeper.check(CallerState()) is GatekeeperState.DECLINED
        assert gatekeeper.last_session is None
        assert store.writes == []

    @pytest.mark.parametrize(
        "process_name,expected",
        [
            ("com.google.android.gms.unstable", GatekeeperState.CERTIFIED),
            ("com.google.android.gms.UNSTABLE", GatekeeperState.CERTIFIED),
            ("com.google.android.apps.pixelmigrate", GatekeeperState.CERTIFIED),
            ("com.google.android.gms:instrumentation", GatekeeperState.CERTIFIED),
            ("com.google.android.gms.persistent", GatekeeperState.DECLINED),
        ],
    )
    def test_process_markers(
        self,
        store: InMemoryIdentityStore,
        observer: SimulationForegroundObserver,
        certified: CertifiedBuildProperties,
        process_name: str,
        expected: GatekeeperState,
    ) -> None:
        """Test that only attestation-capable process names are probed."""
        gatekeeper = CertificationGatekeeper(
            Applier(store), observer, SimulationProcessIdentity(process_name=process_name), certified
        )
        assert gatekeeper.check(gms_state()) is expected


class TestProbe:
    def test_certifies_and_applies_profile(
        self,
        gatekeeper: CertificationGatekeeper,
        store: InMemoryIdentityStore,
        observer: SimulationForegroundObserver,
    ) -> None:
        """Test the probe when the account activity is not on top."""
        assert gatekeeper.should_certify(gms_state()) is True

        assert store.get(IdentityField.TIME) == 1700000000500
        assert store.get(IdentityField.FINGERPRINT) == CHEETAH_FINGERPRINT
        assert gatekeeper.last_session is not None
        assert gatekeeper.last_session.was_on_top is False
        assert gatekeeper.last_session.state is GatekeeperState.CERTIFIED
        assert observer.subscriber_count == 0

    def test_activity_on_top_skips_profile(
        self,
        gatekeeper: CertificationGatekeeper,
        store: InMemoryIdentityStore,
        observer: SimulationForegroundObserver,
    ) -> None:
        """Test that the certified profile is not applied while the account activity is on top."""
        observer.set_top_activity(ACCOUNT_LINKING)
        observer.flush()

        assert gatekeeper.check(gms_state()) is GatekeeperState.CERTIFIED
        assert store.writes == [IdentityField.TIME]

    def test_foreground_flip_declines(self, store: InMemoryIdentityStore, certified: CertifiedBuildProperties) -> None:
        """Test that a foreground change during the probe declines certification."""
        observer = FlippingObserver()
        gatekeeper = CertificationGatekeeper(
            Applier(store),
            observer,
            SimulationProcessIdentity(process_name="com.google.android.gms.unstable"),
            certified,
        )

        assert gatekeeper.check(gms_state()) is GatekeeperState.DECLINED
        assert observer.subscription.cancelled is True
        # Fields written before the flip stay written
        assert store.get(IdentityField.FINGERPRINT) == CHEETAH_FINGERPRINT

    def test_subscription_failure_fails_open(
        self,
        gatekeeper: CertificationGatekeeper,
        store: InMemoryIdentityStore,
        observer: SimulationForegroundObserver,
        log_messages: List[str],
    ) -> None:
        """Test that a failed subscription still certifies and applies the profile."""
        observer.set_top_activity(ACCOUNT_LINKING)
        observer.flush()
        observer.fail_subscribe = True

        assert gatekeeper.check(gms_state()) is GatekeeperState.CERTIFIED
        assert store.get(IdentityField.FINGERPRINT) == CHEETAH_FINGERPRINT
        assert any("Failed to register task stack listener" in m for m in log_messages)

    def test_empty_configuration_is_noop(
        self, store: InMemoryIdentityStore, observer: SimulationForegroundObserver
    ) -> None:
        """Test that certification proceeds without writing fields when nothing is configured."""
        gatekeeper = CertificationGatekeeper(
            Applier(store),
            observer,
            SimulationProcessIdentity(process_name="com.google.android.gms.unstable"),
            CertifiedBuildProperties(),
        )

        assert gatekeeper.apply_certified_profile() is None
        assert gatekeeper.check(gms_state()) is GatekeeperState.CERTIFIED
        assert store.writes == [IdentityField.TIME]

    def test_top_activity_failure(self, gatekeeper: CertificationGatekeeper, log_messages: List[str]) -> None:
        """Test that a failing top-activity lookup counts as not on top."""
        broken = MagicMock()
        broken.current_top_activity.side_effect = RuntimeError("binder died")
        gatekeeper.observer = broken

        assert gatekeeper.is_account_linking_on_top() is False
        assert any("Unable to get top activity" in m for m in log_messages)

    def test_subscription_released_through_observer(
        self, store: InMemoryIdentityStore, certified: CertifiedBuildProperties
    ) -> None:
        """Test that a concluded check hands its subscription back to the observer."""
        subscription = StubSubscription()
        observer = MagicMock()
        observer.current_top_activity.return_value = None
        observer.subscribe.return_value = subscription
        gatekeeper = CertificationGatekeeper(
            Applier(store),
            observer,
            SimulationProcessIdentity(process_name="com.google.android.gms.unstable"),
            certified,
        )

        assert gatekeeper.check(gms_state()) is GatekeeperState.CERTIFIED
        observer.unsubscribe.assert_called_once_with(subscription)


class TestSession:
    def test_decline_is_sticky(self, observer: SimulationForegroundObserver) -> None:
        """Test that once declined, later foreground changes cannot re-certify."""
        session = GatekeeperSession(lambda: observer.current_top_activity() == ACCOUNT_LINKING)
        session.begin(False)
        subscription = observer.subscribe(session.on_foreground_changed)
        session.attach(subscription)

        observer.set_top_activity(ACCOUNT_LINKING)
        observer.flush()
        assert session.state is GatekeeperState.DECLINED
        assert not subscription.active

        observer.set_top_activity(None)
        observer.flush()
        assert session.state is GatekeeperState.DECLINED
        assert session.conclude() is GatekeeperState.DECLINED

    def test_unrelated_change_keeps_probing(self, observer: SimulationForegroundObserver) -> None:
        """Test that a change leaving the comparison unchanged does not decline."""
        session = GatekeeperSession(lambda: observer.current_top_activity() == ACCOUNT_LINKING)
        session.begin(False)
        session.attach(observer.subscribe(session.on_foreground_changed))

        observer.set_top_activity("com.android.settings/.Settings")
        observer.flush()

        assert session.state is GatekeeperState.PROBING
        assert session.conclude() is GatekeeperState.CERTIFIED
        assert observer.subscriber_count == 0

    def test_attach_after_decline_cancels(self) -> None:
        """Test that a subscription attached after a decline is cancelled immediately."""
        session = GatekeeperSession(lambda: True)
        session.begin(False)
        session.on_foreground_changed()
        subscription = StubSubscription()

        session.attach(subscription)

        assert subscription.cancelled is True

    def test_lookup_runs_outside_session_lock(self) -> None:
        """Test that the top-activity lookup does not block readers of the session state."""
        seen: List[GatekeeperState] = []

        def _lookup() -> bool:
            reader = threading.Thread(target=lambda: seen.append(session.state))
            reader.start()
            reader.join(timeout=1.0)
            return True

        session = GatekeeperSession(_lookup)
        session.begin(False)
        session.on_foreground_changed()

        assert seen == [GatekeeperState.PROBING]
        assert session.state is GatekeeperState.DECLINED

    def test_begin_twice_is_rejected(self) -> None:
        """Test that a session can only start probing once."""
        session = GatekeeperSession(lambda: False)
        assert session.state is GatekeeperState.IDLE
        session.begin(False)
        with pytest.raises(RuntimeError):
            session.begin(False)

    def test_account_activity_constant(self) -> None:
        """Test the account linking component."""
        assert ACCOUNT_LINKING_ACTIVITY.flatten() == (
            "com.google.android.gms/com.google.android.gms.auth.uiflows.minutemaid.MinuteMaidActivity"
        )


class TestResolveCertifiedFields:
    def test_fallbacks_from_fingerprint(self) -> None:
        """Test that empty values fall back to fingerprint-derived data and defaults."""
        fields = resolve_certified_fields(CertifiedBuildProperties(fingerprint=CHEETAH_FINGERPRINT))

        assert fields == {
            IdentityField.PRODUCT: "cheetah",
            IdentityField.DEVICE: "cheetah",
            IdentityField.BRAND: "google",
            IdentityField.FINGERPRINT: CHEETAH_FINGERPRINT,
            IdentityField.ID: "TQ3A.230805.001",
            IdentityField.TYPE: "user",
            IdentityField.TAGS: "release-keys",
        }

    def test_configured_values_win(self) -> None:
        """Test that configured values are used over fallbacks."""
        props = CertifiedBuildProperties.from_list(
            ["prod", "dev", "Maker", "brand", "Model", CHEETAH_FINGERPRINT]
            + ["2024-01-01", "30", "ID1", "userdebug", "keys"]
        )
        fields = resolve_certified_fields(props)

        assert fields[IdentityField.PRODUCT] == "prod"
        assert fields[IdentityField.DEVICE] == "dev"
        assert fields[IdentityField.MANUFACTURER] == "Maker"
        assert fields[IdentityField.ID] == "ID1"
        assert fields[IdentityField.INITIAL_SDK_INT] == 30
        assert fields[IdentityField.TYPE] == "userdebug"

    def test_non_numeric_sdk_is_ignored(self) -> None:
        """Test that a non-numeric initial SDK is not applied."""
        fields = resolve_certified_fields(CertifiedBuildProperties(fingerprint=CHEETAH_FINGERPRINT, initial_sdk="U"))
        assert IdentityField.INITIAL_SDK_INT not in fields
