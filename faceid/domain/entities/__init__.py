"""Domain entities package."""
from .identity import (
    AttemptOutcome,
    AttemptRecord,
    Descriptor,
    Identity,
    Role,
    as_descriptor,
)

__all__ = [
    "AttemptOutcome",
    "AttemptRecord",
    "Descriptor",
    "Identity",
    "Role",
    "as_descriptor",
]
