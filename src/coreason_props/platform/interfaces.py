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
Platform Interfaces.

Defines the contracts for the platform-owned collaborators: the mutable identity
store, the foreground-task observer and the process identity source.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Protocol, runtime_checkable

from coreason_props.schemas import FieldValue, IdentityField

ForegroundCallback = Callable[[], None]


class IdentityStore(ABC):
    """
    Abstract Base Class for the process-global device identity store.
    """

    @abstractmethod
    def get(self, field: IdentityField) -> Optional[FieldValue]:
        """
        Read the current value of a field.

        Returns:
            Optional[FieldValue]: The value, or None if the field is unset.
        """
        pass  # pragma: no cover

    @abstractmethod
    def set(self, field: IdentityField, value: FieldValue) -> bool:
        """
        Overwrite a field.

        Returns:
            bool: True if the store accepted the write, False if it rejected it.
        """
        pass  # pragma: no cover


@runtime_checkable
class Subscription(Protocol):
    """Handle for a foreground-change subscription."""

    @property
    def active(self) -> bool:
        """True until the subscription is cancelled."""
        ...  # pragma: no cover

    def cancel(self) -> None:
        """Stop delivery. Safe to call more than once."""
        ...  # pragma: no cover


@runtime_checkable
class ForegroundTaskObserver(Protocol):
    """
    Protocol for the platform's task-stack notification source.

    Callbacks may be delivered on a thread owned by the observer.
    """

    def subscribe(self, callback: ForegroundCallback) -> Subscription:
        """
        Register a callback fired once per foreground change.

        Raises:
            Exception: Any platform failure to register.
        """
        ...  # pragma: no cover

    def unsubscribe(self, subscription: Subscription) -> None:
        """Cancel a subscription. Safe to call more than once."""
        ...  # pragma: no cover

    def current_top_activity(self) -> Optional[str]:
        """Return the flattened component of the focused task's top activity, if any."""
        ...  # pragma: no cover


@runtime_checkable
class ProcessIdentitySource(Protocol):
    """Protocol exposing the identity of the running process."""

    def current_process_name(self) -> str:
        """Name of the current process."""
        ...  # pragma: no cover

    def calling_package_for_uid(self, uid: int) -> Optional[str]:
        """Package name owning the given uid, if known."""
        ...  # pragma: no cover

    def device_codename(self) -> str:
        """Codename of the physical device the process runs on."""
        ...  # pragma: no cover
