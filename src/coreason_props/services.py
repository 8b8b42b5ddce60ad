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
Coreason Props Service.

Wires the catalog, classifier, gatekeeper and applier to the platform collaborators
and exposes the process-level entry points.
"""

from typing import Iterable, Optional

from coreason_props.applier import Applier
from coreason_props.catalog import ProfileCatalog, default_catalog
from coreason_props.classifier import Classifier
from coreason_props.config import load_certified_properties, load_settings
from coreason_props.context import CallerState
from coreason_props.gatekeeper import CertificationGatekeeper
from coreason_props.platform.interfaces import ForegroundTaskObserver, IdentityStore, ProcessIdentitySource
from coreason_props.platform.simulation import (
    InMemoryIdentityStore,
    SimulationForegroundObserver,
    SimulationProcessIdentity,
)
from coreason_props.schemas import CertifiedBuildProperties, Decision, DecisionKind, IdentityField
from coreason_props.utils.logger import logger


class CoreasonPropsService:
    """
    Per-process identity spoofing service.

    One instance per process. Its CallerState lives as long as the instance.
    """

    def __init__(
        self,
        store: IdentityStore,
        observer: ForegroundTaskObserver,
        process: ProcessIdentitySource,
        certified: Optional[CertifiedBuildProperties] = None,
        catalog: Optional[ProfileCatalog] = None,
        caller_state: Optional[CallerState] = None,
    ) -> None:
        self.store = store
        self.observer = observer
        self.process = process
        self.catalog = catalog or default_catalog()
        self.caller_state = caller_state or CallerState()
        self.applier = Applier(store)
        self.gatekeeper = CertificationGatekeeper(
            self.applier, observer, process, certified or CertifiedBuildProperties()
        )
        self.classifier = Classifier(self.catalog, self.gatekeeper, process)

    def set_props(self, package: Optional[str]) -> Decision:
        """
        Apply the identity a starting application should see.

        The generic override is written first, whatever the classification.

        Args:
            package: The starting application's package identifier.

        Returns:
            Decision: The decision that was applied.
        """
        self.applier.apply(self.catalog.rules.generic_override)

        decision = self.classifier.classify(package or "", self.caller_state)
        logger.debug(f"Decision for {package}: {decision.kind.value} ({decision.reason})")

        if decision.kind is not DecisionKind.APPLY or decision.profile is None:
            return decision

        result = self.applier.apply(decision.profile.to_field_set(), decision.exclusions)
        if not result.ok:
            logger.warning(f"Some props could not be set for {package}: {[f.value for f in result.failed]}")

        if decision.restore_incremental_fingerprint:
            incremental = self.store.get(IdentityField.INCREMENTAL)
            if incremental is not None:
                self.applier.set_field(IdentityField.FINGERPRINT, incremental)
            else:
                logger.error("Build incremental unavailable, cannot restore indexing fingerprint")

        return decision

    def on_engine_get_certificate_chain(self, stack: Optional[Iterable[str]] = None) -> None:
        """
        Hook for key attestation certificate chain requests.

        Raises:
            KeyAttestationBlockedError: If attestation must be halted for this caller.
        """
        self.gatekeeper.on_engine_get_certificate_chain(self.caller_state, stack)

    def should_bypass_task_permission(self, uid: int) -> bool:
        """Return True if the package calling with `uid` is a Google package."""
        calling_package = self.process.calling_package_for_uid(uid)
        logger.debug(f"should_bypass_task_permission: calling_package={calling_package}")
        return calling_package is not None and "google" in calling_package.lower()


def create_simulation_service(
    process_name: str = "com.example.app",
    device_codename: str = "generic",
    top_activity: Optional[str] = None,
    certified: Optional[CertifiedBuildProperties] = None,
) -> CoreasonPropsService:
    """
    Build a service on the simulated platform.

    Requires 'COREASON_PROPS_SIMULATION=true'. Certified properties default to the file
    named by 'COREASON_PROPS_CERTIFIED_FILE'.
    WARNING: DO NOT USE IN PRODUCTION.

    Raises:
        RuntimeError: If simulation mode is not enabled.
    """
    settings = load_settings()
    if not settings.simulation:
        error_msg = (
            "Refusing to build a simulated platform: COREASON_PROPS_SIMULATION is not 'true'. "
            "Simulated identity stores must never back a real process."
        )
        logger.critical(error_msg)
        raise RuntimeError(error_msg)

    logger.warning("Initializing Coreason Props on the SIMULATED platform.")
    if certified is None:
        certified = load_certified_properties(settings.certified_file)
    return CoreasonPropsService(
        store=InMemoryIdentityStore(),
        observer=SimulationForegroundObserver(top_activity),
        process=SimulationProcessIdentity(process_name=process_name, device_codename=device_codename),
        certified=certified,
    )
