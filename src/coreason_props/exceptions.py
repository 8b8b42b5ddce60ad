# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_props


class KeyAttestationBlockedError(Exception):
    """
    Raised when a key attestation call must be halted.

    Propagates to the immediate caller of the certificate chain request and is
    never swallowed inside this package.
    """

    pass


class ConfigurationError(Exception):
    """Raised when startup configuration is malformed."""

    pass
