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
Data schemas for Coreason Props.

Defines identity fields, spoof profiles, the certified build configuration and the
decisions produced by the classifier.
"""

from enum import Enum
from typing import ClassVar, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

FieldValue = Union[str, int]


class IdentityField(str, Enum):
    """
    Closed set of device identity fields the identity store exposes.

    Attributes:
        TIME: Build timestamp in milliseconds, refreshed when certification is probed.
        INCREMENTAL: Real build incremental. Only ever read.
    """

    BRAND = "BRAND"
    MANUFACTURER = "MANUFACTURER"
    ID = "ID"
    DEVICE = "DEVICE"
    PRODUCT = "PRODUCT"
    MODEL = "MODEL"
    FINGERPRINT = "FINGERPRINT"
    TYPE = "TYPE"
    TAGS = "TAGS"
    SECURITY_PATCH = "SECURITY_PATCH"
    INITIAL_SDK_INT = "INITIAL_SDK_INT"
    TIME = "TIME"
    INCREMENTAL = "INCREMENTAL"


IdentityFieldSet = Mapping[IdentityField, FieldValue]


class SpoofProfile(BaseModel):
    """
    A named reference device whose identity is presented to selected packages.

    Attributes:
        name (str): Marketing name of the reference device (e.g. "Pixel 8 Pro").
        brand (str): BRAND value.
        manufacturer (str): MANUFACTURER value.
        build_id (str): ID value, parsed from the fingerprint.
        device (str): DEVICE value (codename).
        product (str): PRODUCT value.
        model (str): MODEL value.
        fingerprint (str): Full build fingerprint.
        type (str): Build TYPE.
        tags (str): Build TAGS.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    brand: str = "google"
    manufacturer: str = "Google"
    build_id: str
    device: str
    product: str
    model: str
    fingerprint: str
    type: str = "user"
    tags: str = "release-keys"

    def to_field_set(self) -> Dict[IdentityField, FieldValue]:
        """Return the profile as a fresh field -> value mapping."""
        return {
            IdentityField.BRAND: self.brand,
            IdentityField.MANUFACTURER: self.manufacturer,
            IdentityField.ID: self.build_id,
            IdentityField.DEVICE: self.device,
            IdentityField.PRODUCT: self.product,
            IdentityField.MODEL: self.model,
            IdentityField.FINGERPRINT: self.fingerprint,
            IdentityField.TYPE: self.type,
            IdentityField.TAGS: self.tags,
        }


class CertifiedBuildProperties(BaseModel):
    """
    Certified reference identity, sourced from configuration.

    Every value may be empty; empty values fall back to data derived from the
    fingerprint or to hardcoded defaults when applied.
    """

    model_config = ConfigDict(frozen=True)

    ORDER: ClassVar[Tuple[str, ...]] = (
        "product",
        "device",
        "manufacturer",
        "brand",
        "model",
        "fingerprint",
        "security_patch",
        "initial_sdk",
        "build_id",
        "type",
        "tags",
    )

    product: str = ""
    device: str = ""
    manufacturer: str = ""
    brand: str = ""
    model: str = ""
    fingerprint: str = ""
    security_patch: str = ""
    initial_sdk: str = ""
    build_id: str = ""
    type: str = ""
    tags: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def strip_value(cls, v: object) -> object:
        """Strip surrounding whitespace from configured strings."""
        if isinstance(v, str):
            return v.strip()
        return v

    @classmethod
    def from_list(cls, values: List[str]) -> "CertifiedBuildProperties":
        """
        Build the configuration from its ordered list form.

        Args:
            values (List[str]): Exactly 11 strings, or an empty list.

        Raises:
            ValueError: If the list is neither empty nor of the expected length.
        """
        if not values:
            return cls()
        if len(values) != len(cls.ORDER):
            raise ValueError(f"Certified build properties must have {len(cls.ORDER)} entries, got {len(values)}")
        return cls(**dict(zip(cls.ORDER, values)))

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in self.ORDER)


class DecisionKind(str, Enum):
    """
    Outcome of classifying a package.

    Attributes:
        SKIP: Leave the identity untouched.
        CERTIFY: The certified identity already took precedence.
        APPLY: Apply a spoof profile, honouring field exclusions.
    """

    SKIP = "SKIP"
    CERTIFY = "CERTIFY"
    APPLY = "APPLY"


class Decision(BaseModel):
    """Decision emitted by the classifier for one package."""

    model_config = ConfigDict(frozen=True)

    kind: DecisionKind
    reason: str = ""
    profile: Optional[SpoofProfile] = None
    exclusions: FrozenSet[IdentityField] = Field(default_factory=frozenset)
    restore_incremental_fingerprint: bool = False

    @classmethod
    def skip(cls, reason: str) -> "Decision":
        return cls(kind=DecisionKind.SKIP, reason=reason)

    @classmethod
    def certify(cls) -> "Decision":
        return cls(kind=DecisionKind.CERTIFY, reason="certified identity takes precedence")

    @classmethod
    def apply(
        cls,
        profile: SpoofProfile,
        exclusions: FrozenSet[IdentityField] = frozenset(),
        restore_incremental_fingerprint: bool = False,
    ) -> "Decision":
        return cls(
            kind=DecisionKind.APPLY,
            reason=f"spoofing as {profile.name}",
            profile=profile,
            exclusions=exclusions,
            restore_incremental_fingerprint=restore_incremental_fingerprint,
        )


class ApplyResult(BaseModel):
    """Outcome of writing a field set into the identity store."""

    applied: List[IdentityField] = Field(default_factory=list)
    skipped: List[IdentityField] = Field(default_factory=list)
    failed: List[IdentityField] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class GatekeeperState(str, Enum):
    """States of a certification probe session."""

    IDLE = "IDLE"
    PROBING = "PROBING"
    CERTIFIED = "CERTIFIED"
    DECLINED = "DECLINED"


class ComponentName(BaseModel):
    """
    Identifier of an activity component, `package/class`.
    """

    model_config = ConfigDict(frozen=True)

    package: str
    class_name: str

    @classmethod
    def unflatten(cls, value: Optional[str]) -> Optional["ComponentName"]:
        """
        Parse a flattened component string.

        A class name starting with '.' is relative to the package.
        Returns None when the value has no '/' separator.
        """
        if not value:
            return None
        package, sep, class_name = value.partition("/")
        if not sep or not package or not class_name:
            return None
        if class_name.startswith("."):
            class_name = package + class_name
        return cls(package=package, class_name=class_name)

    def flatten(self) -> str:
        return f"{self.package}/{self.class_name}"
