"""
Coreason Props Package.

Exposes the CoreasonPropsService and its decision types.
"""

from coreason_props.exceptions import KeyAttestationBlockedError
from coreason_props.schemas import Decision, DecisionKind, IdentityField
from coreason_props.services import CoreasonPropsService

__all__ = ["CoreasonPropsService", "Decision", "DecisionKind", "IdentityField", "KeyAttestationBlockedError"]
