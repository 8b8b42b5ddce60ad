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
Startup configuration.

Reads environment settings and the certified build properties once at startup.
"""

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from coreason_props.exceptions import ConfigurationError
from coreason_props.schemas import CertifiedBuildProperties
from coreason_props.utils.logger import logger


class PropsSettings(BaseModel):
    """
    Runtime settings.

    Attributes:
        certified_file (Optional[Path]): JSON file with the certified build properties.
        simulation (bool): Allow running against the simulated platform.
    """

    certified_file: Optional[Path] = Field(None, description="JSON list of certified build properties")
    simulation: bool = Field(False, description="Run against the simulated platform")


def load_settings() -> PropsSettings:
    """
    Load settings from the environment.

    Controlled by 'COREASON_PROPS_CERTIFIED_FILE' and 'COREASON_PROPS_SIMULATION'.
    """
    certified_file = os.getenv("COREASON_PROPS_CERTIFIED_FILE") or None
    simulation = os.getenv("COREASON_PROPS_SIMULATION", "false").lower() == "true"
    return PropsSettings(certified_file=certified_file, simulation=simulation)


def load_certified_properties(path: Optional[Path]) -> CertifiedBuildProperties:
    """
    Load the certified build properties.

    The file holds a JSON list of 11 strings: product, device, manufacturer, brand,
    model, fingerprint, security patch, initial SDK, build ID, type and tags.
    A missing path or an empty list yields an empty configuration.

    Raises:
        ConfigurationError: If the file cannot be read or is malformed.
    """
    if path is None:
        logger.info("No certified build properties configured.")
        return CertifiedBuildProperties()

    path = Path(path)
    if not path.exists():
        logger.warning(f"Certified build properties file not found: {path}")
        return CertifiedBuildProperties()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read certified build properties from {path}: {e}")
        raise ConfigurationError(f"Unreadable certified build properties: {path}") from e

    if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
        raise ConfigurationError(f"Certified build properties must be a list of strings: {path}")

    try:
        props = CertifiedBuildProperties.from_list(raw)
    except (ValueError, ValidationError) as e:
        raise ConfigurationError(str(e)) from e

    logger.info(f"Loaded certified build properties from {path} (fingerprint={props.fingerprint or '<empty>'})")
    return props
