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
Caller State.

Per-process latches recording which privileged package runs in this process.
"""

import threading

from coreason_props.utils.logger import logger

GMS_PACKAGE = "com.google.android.gms"
STORE_PACKAGE = "com.android.vending"
SETUP_WIZARD_PACKAGE = "com.google.android.setupwizard"


class CallerState:
    """
    Latched caller flags for one process.

    Constructed once at process start and shared by reference. Flags only move
    from False to True and are never reset.
    """

    def __init__(self) -> None:
        self._gms = threading.Event()
        self._store = threading.Event()
        self._setup_wizard = threading.Event()

    def latch(self, package: str) -> None:
        """Record the privileged package identity, if `package` is one."""
        if package == STORE_PACKAGE:
            flag = self._store
        elif package == GMS_PACKAGE:
            flag = self._gms
        elif package == SETUP_WIZARD_PACKAGE:
            flag = self._setup_wizard
        else:
            return
        if not flag.is_set():
            logger.debug(f"Latching caller state for {package}")
            flag.set()

    @property
    def is_gms(self) -> bool:
        return self._gms.is_set()

    @property
    def is_store(self) -> bool:
        return self._store.is_set()

    @property
    def is_setup_wizard(self) -> bool:
        return self._setup_wizard.is_set()

    def __repr__(self) -> str:
        return f"CallerState(gms={self.is_gms}, store={self.is_store}, setup_wizard={self.is_setup_wizard})"
