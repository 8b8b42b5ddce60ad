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
Package Classifier.

Maps a requesting package to a decision: skip it, let the certified identity take
precedence, or apply one of the catalog's spoof profiles.
"""

from coreason_props.catalog import ProfileCatalog
from coreason_props.context import CallerState
from coreason_props.gatekeeper import CertificationGatekeeper
from coreason_props.platform.interfaces import ProcessIdentitySource
from coreason_props.schemas import Decision
from coreason_props.utils.logger import logger


class Classifier:
    """
    Classifies packages against the profile catalog.
    """

    def __init__(
        self,
        catalog: ProfileCatalog,
        gatekeeper: CertificationGatekeeper,
        process: ProcessIdentitySource,
    ) -> None:
        self.catalog = catalog
        self.gatekeeper = gatekeeper
        self.process = process

    def classify(self, package: str, caller_state: CallerState) -> Decision:
        """
        Classify a package.

        Latches the caller state first. Certification, when granted, takes precedence
        over every profile rule.

        Args:
            package (str): The requesting package identifier.
            caller_state (CallerState): The process caller state.

        Returns:
            Decision: SKIP, CERTIFY or APPLY.
        """
        if not package:
            return Decision.skip("no package")

        caller_state.latch(package)

        if self.gatekeeper.should_certify(caller_state):
            return Decision.certify()

        rules = self.catalog.rules
        if rules.is_exempt(package):
            return Decision.skip("exempt package")
        if rules.is_camera(package):
            return Decision.skip("camera package")
        if not rules.is_eligible(package):
            return Decision.skip("not eligible")

        if package == rules.photos_package:
            profile = self.catalog.legacy
        elif rules.is_reference_device(self.process.device_codename()):
            return Decision.skip("already a reference device")
        elif package in rules.flagship_packages:
            profile = self.catalog.flagship
        else:
            profile = self.catalog.baseline

        logger.debug(f"Defining props for {package} as {profile.name}")
        return Decision.apply(
            profile,
            exclusions=rules.exclusions_for(package),
            restore_incremental_fingerprint=package == rules.search_index_package,
        )
