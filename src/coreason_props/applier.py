# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_props

from typing import AbstractSet

from coreason_props.platform.interfaces import IdentityStore
from coreason_props.schemas import ApplyResult, FieldValue, IdentityField, IdentityFieldSet
from coreason_props.utils.logger import logger


class Applier:
    """
    Writes resolved identity fields into the identity store.

    Every field is written independently: a rejected write is logged and the
    remaining fields are still attempted. There is no rollback.
    """

    def __init__(self, store: IdentityStore) -> None:
        self.store = store

    def set_field(self, field: IdentityField, value: FieldValue) -> bool:
        """
        Write a single field, never raising.

        Returns:
            bool: True if the store accepted the value.
        """
        logger.debug(f"Defining prop {field.value} to {value}")
        try:
            accepted = self.store.set(field, value)
        except Exception as e:
            logger.error(f"Failed to set prop {field.value}: {e}")
            return False
        if not accepted:
            logger.error(f"Failed to set prop {field.value}: rejected by identity store")
        return bool(accepted)

    def apply(self, field_set: IdentityFieldSet, exclusions: AbstractSet[IdentityField] = frozenset()) -> ApplyResult:
        """
        Apply a field set, skipping excluded fields.

        Args:
            field_set: Field -> value mapping to write.
            exclusions: Fields that must keep their current value.

        Returns:
            ApplyResult: Which fields were applied, skipped, or failed.
        """
        result = ApplyResult()
        for field, value in field_set.items():
            if field in exclusions:
                logger.debug(f"Not defining {field.value} prop: excluded")
                result.skipped.append(field)
                continue
            if self.set_field(field, value):
                result.applied.append(field)
            else:
                result.failed.append(field)
        return result
