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
Entry point for the Coreason Props inspection tool.

Resolves the identity decision for a package against the simulated platform and
prints the decision together with the resulting identity fields.
"""

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from coreason_props.config import load_certified_properties
from coreason_props.exceptions import KeyAttestationBlockedError
from coreason_props.platform.simulation import InMemoryIdentityStore, SimulationForegroundObserver
from coreason_props.services import create_simulation_service
from coreason_props.utils.logger import logger


def apply_simulation_policy(simulation_flag: bool) -> None:
    """
    Configure the platform mode for the tool.

    Only the simulated platform ships with this package, so the --simulation flag is
    mandatory.

    Raises:
        RuntimeError: If the --simulation flag is missing.
    """
    if not simulation_flag:
        error_msg = (
            "No device platform bindings are available in this process. "
            "Pass --simulation to inspect decisions against the simulated platform."
        )
        logger.critical(error_msg)
        raise RuntimeError(error_msg)

    logger.warning("Running against the SIMULATED platform. Identity writes are in-memory only.")
    os.environ["COREASON_PROPS_SIMULATION"] = "true"


def main(args: Optional[list[str]] = None) -> None:
    """
    Entry point for the Coreason Props inspection tool.

    Args:
        args (Optional[list[str]]): Command line arguments. Defaults to sys.argv[1:].
    """
    parser = argparse.ArgumentParser(description="Coreason Props decision inspector")
    parser.add_argument("--package", "-p", type=str, required=True, help="Package identifier of the caller")
    parser.add_argument("--device", "-d", type=str, default="generic", help="Device codename")
    parser.add_argument("--process-name", type=str, default=None, help="Process name (defaults to the package)")
    parser.add_argument("--top-activity", type=str, default=None, help="Flattened component on top")
    parser.add_argument("--certified-file", type=str, default=None, help="JSON file of certified properties")
    parser.add_argument(
        "--check-attestation",
        action="store_true",
        help="Also evaluate the key attestation guard as if called from the safety library",
    )
    parser.add_argument("--simulation", action="store_true", help="Use the simulated platform")

    try:
        parsed_args = parser.parse_args(args)
        apply_simulation_policy(parsed_args.simulation)

        certified = None
        if parsed_args.certified_file:
            certified = load_certified_properties(Path(parsed_args.certified_file))

        service = create_simulation_service(
            process_name=parsed_args.process_name or parsed_args.package,
            device_codename=parsed_args.device,
            top_activity=parsed_args.top_activity,
            certified=certified,
        )
        decision = service.set_props(parsed_args.package)

        output: Dict[str, Any] = {"decision": decision.model_dump(mode="json")}

        if parsed_args.check_attestation:
            try:
                service.on_engine_get_certificate_chain(stack=["com.google.android.gms.droidguard.DroidGuardChimera"])
                output["attestation"] = "allowed"
            except KeyAttestationBlockedError:
                output["attestation"] = "blocked"

        if isinstance(service.store, InMemoryIdentityStore):
            output["identity"] = {field.value: value for field, value in service.store.snapshot().items()}

        print(json.dumps(output, indent=2, sort_keys=True))
        if isinstance(service.observer, SimulationForegroundObserver):
            service.observer.close()

    except Exception as e:
        logger.exception(f"Failed to resolve props: {e}")
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()  # pragma: no cover
