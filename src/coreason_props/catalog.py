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
Profile Catalog.

Static table of reference-device spoof profiles and the package classification lists.
"""

import re
from types import MappingProxyType
from typing import Any, FrozenSet, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from coreason_props.schemas import FieldValue, IdentityField, SpoofProfile

_BUILD_ID_PATTERN = re.compile(r"([A-Za-z0-9]+\.\d+\.\d+\.\w+)")


def get_build_id(fingerprint: str) -> str:
    """
    Extract the build ID from a fingerprint.

    Returns the first token shaped like `<alnum+>.<digits>.<digits>.<word>`,
    or an empty string if there is none.
    """
    match = _BUILD_ID_PATTERN.search(fingerprint)
    if match:
        return match.group(1)
    return ""


def get_device_name(fingerprint: str) -> str:
    """Return the second '/'-delimited segment of a fingerprint, or an empty string."""
    parts = fingerprint.split("/")
    if len(parts) >= 2:
        return parts[1]
    return ""


def load_profile(fingerprint: str, device: str, model: str) -> SpoofProfile:
    """
    Build a Google reference-device profile.

    Args:
        fingerprint (str): Build fingerprint, `brand/device:version/buildID/incremental:type/tags`.
        device (str): Device codename, used for DEVICE and PRODUCT.
        model (str): Marketing model name.

    Returns:
        SpoofProfile: The immutable profile.
    """
    return SpoofProfile(
        name=model,
        build_id=get_build_id(fingerprint),
        device=device,
        product=device,
        model=model,
        fingerprint=fingerprint,
    )


PIXEL_8_PRO = load_profile(
    "google/husky/husky:14/UD1A.230803.041/10808477:user/release-keys",
    "husky",
    "Pixel 8 Pro",
)

# Cellular-capable mid-range baseline
PIXEL_5A = load_profile(
    "google/barbet/barbet:14/UP1A.231005.007/10754064:user/release-keys",
    "barbet",
    "Pixel 5a",
)

PIXEL_XL = load_profile(
    "google/marlin/marlin:10/QP1A.191005.007.A3/5972272:user/release-keys",
    "marlin",
    "Pixel XL",
)


class PackageClassificationRules(BaseModel):
    """
    Package lists and per-package exclusions driving classification.

    Attributes:
        exempt_packages: Packages never touched.
        flagship_packages: Packages given the flagship profile.
        extra_packages: Eligible packages outside the Google/Samsung namespaces.
        eligible_prefixes: Namespace prefixes making a package eligible.
        camera_prefix: Prefix identifying camera app variants.
        camera_packages: Additional camera app variants.
        reference_codenames: Codenames of currently supported reference devices.
        photos_package: Package always given the oldest profile.
        search_index_package: Package whose FINGERPRINT is reset to the real incremental.
        field_exclusions: Package -> fields never overridden for it.
        generic_override: Fields applied before any package check.
    """

    model_config = ConfigDict(frozen=True)

    exempt_packages: FrozenSet[str]
    flagship_packages: FrozenSet[str]
    extra_packages: FrozenSet[str]
    eligible_prefixes: Tuple[str, ...] = ("com.google.", "com.samsung.")
    camera_prefix: str = "com.google.android.GoogleCamera"
    camera_packages: FrozenSet[str]
    reference_codenames: FrozenSet[str]
    photos_package: str = "com.google.android.apps.photos"
    search_index_package: str = "com.google.android.settings.intelligence"
    field_exclusions: Mapping[str, FrozenSet[IdentityField]] = Field(default_factory=dict, validate_default=True)
    generic_override: Mapping[IdentityField, FieldValue] = Field(
        default_factory=lambda: {IdentityField.TYPE: "user", IdentityField.TAGS: "release-keys"},
        validate_default=True,
    )

    @field_validator("field_exclusions", "generic_override", mode="after")
    @classmethod
    def freeze_mapping(cls, v: Mapping[Any, Any]) -> Mapping[Any, Any]:
        """Wrap a validated mapping in a read-only view."""
        return MappingProxyType(dict(v))

    @model_validator(mode="after")
    def validate_disjoint(self) -> "PackageClassificationRules":
        """Validate that no package is both exempt and a flagship target."""
        overlap = self.exempt_packages & self.flagship_packages
        if overlap:
            raise ValueError(f"Packages cannot be both exempt and flagship targets: {sorted(overlap)}")
        return self

    def is_exempt(self, package: str) -> bool:
        return package in self.exempt_packages

    def is_camera(self, package: str) -> bool:
        return package.startswith(self.camera_prefix) or package in self.camera_packages

    def is_eligible(self, package: str) -> bool:
        return package.startswith(self.eligible_prefixes) or package in self.extra_packages

    def is_reference_device(self, codename: str) -> bool:
        return codename in self.reference_codenames

    def exclusions_for(self, package: str) -> FrozenSet[IdentityField]:
        return self.field_exclusions.get(package, frozenset())


class ProfileCatalog(BaseModel):
    """The spoof profiles together with the rules selecting among them."""

    model_config = ConfigDict(frozen=True)

    flagship: SpoofProfile
    baseline: SpoofProfile
    legacy: SpoofProfile
    rules: PackageClassificationRules


DEFAULT_RULES = PackageClassificationRules(
    exempt_packages=frozenset(
        {
            "com.google.android.apps.motionsense.bridge",
            "com.google.android.apps.pixelmigrate",
            "com.google.android.dialer",
            "com.google.android.euicc",
            "com.google.ar.core",
            "com.google.android.youtube",
            "com.google.android.apps.youtube.kids",
            "com.google.android.apps.youtube.music",
            "com.google.android.apps.recorder",
            "com.google.android.apps.wearables.maestro.companion",
            "com.google.android.apps.tachyon",
            "com.google.android.apps.tycho",
            "com.google.android.as",
            "com.google.android.gms",
            "com.google.android.apps.restore",
            "com.google.oslo",
        }
    ),
    flagship_packages=frozenset(
        {
            "com.google.android.apps.customization.pixel",
            "com.google.android.apps.privacy.wildlife",
            "com.google.android.apps.wallpaper.pixel",
            "com.google.android.apps.wallpaper",
            "com.google.android.apps.subscriptions.red",
            "com.google.pixel.livewallpaper",
            "com.google.android.wallpaper.effects",
            "com.google.android.apps.emojiwallpaper",
            "com.google.android.apps.aiwallpapers",
        }
    ),
    extra_packages=frozenset(
        {
            "com.android.chrome",
            "com.breel.wallpapers20",
            "com.nhs.online.nhsonline",
            "com.netflix.mediaclient",
            "com.nothing.smartcenter",
        }
    ),
    camera_packages=frozenset(
        {
            "com.google.android.MTCL83",
            "com.google.android.UltraCVM",
            "com.google.android.apps.cameralite",
        }
    ),
    reference_codenames=frozenset(
        {
            "husky",
            "shiba",
            "felix",
            "tangorpro",
            "lynx",
            "cheetah",
            "panther",
            "bluejay",
            "oriole",
            "raven",
            "barbet",
            "redfin",
            "bramble",
            "sunfish",
        }
    ),
    field_exclusions={
        "com.google.android.settings.intelligence": frozenset({IdentityField.FINGERPRINT}),
    },
)


def default_catalog() -> ProfileCatalog:
    """Return the built-in catalog."""
    return ProfileCatalog(flagship=PIXEL_8_PRO, baseline=PIXEL_5A, legacy=PIXEL_XL, rules=DEFAULT_RULES)
