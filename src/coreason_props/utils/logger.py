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
Logger configuration.

Configures the shared loguru logger once, on first import.
"""

import os
import sys

from loguru import logger

__all__ = ["logger"]

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

logger.remove()

logger.add(
    sys.stderr,
    level=os.getenv("COREASON_PROPS_LOG_LEVEL", "INFO").upper(),
    format=LOG_FORMAT,
    diagnose=False,
)

_log_file = os.getenv("COREASON_PROPS_LOG_FILE")
if _log_file:  # pragma: no cover
    logger.add(
        _log_file,
        rotation="10 MB",
        retention="7 days",
        serialize=True,
        enqueue=True,
        level="DEBUG",
        diagnose=False,
    )
