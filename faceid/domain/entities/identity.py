"""Core identity domain entities."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

Descriptor = np.ndarray


def as_descriptor(values: Union[np.ndarray, Sequence[float]]) -> Descriptor:
    """Convert raw embedding values to a read-only 1-D float64 descriptor.

    Args:
        values: Embedding produced by the extractor or loaded from storage

    Returns:
        np.ndarray: Immutable descriptor

    Raises:
        ValueError: If the values are not a non-empty 1-D sequence of finite numbers
    """
    arr = np.array(values, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError("Descriptor must be one-dimensional")
    if arr.size == 0:
        raise ValueError("Descriptor must not be empty")
    if not np.all(np.isfinite(arr)):
        raise ValueError("Descriptor must contain finite values")
    arr.flags.writeable = False
    return arr


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a fresh identity or record id."""
    return str(uuid.uuid4())


class Role(str, Enum):
    """Tier of an identity in the enrollment lifecycle."""
    REGISTERED = "registered"
    QUARANTINED = "quarantined"


class AttemptOutcome(str, Enum):
    """Outcome of one verification encounter."""
    MATCHED = "matched"
    QUARANTINED = "quarantined"
    REJECTED = "rejected"


class AttemptRecord(BaseModel):
    """Immutable audit entry for one verification encounter."""
    record_id: str = Field(default_factory=new_id, description="Unique record identifier")
    timestamp: datetime = Field(..., description="When the attempt happened (UTC)")
    outcome: AttemptOutcome = Field(..., description="Outcome of the attempt")
    descriptor_snapshot: Descriptor = Field(..., description="Descriptor captured during the attempt")

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    @field_validator("descriptor_snapshot", mode="before")
    @classmethod
    def validate_snapshot(cls, v: Union[np.ndarray, list]) -> Descriptor:
        """Store the snapshot as an immutable descriptor."""
        return as_descriptor(v)

    @field_serializer("descriptor_snapshot")
    def serialize_snapshot(self, v: Descriptor) -> List[float]:
        return v.tolist()


class Identity(BaseModel):
    """A registered person or a quarantined, not yet classified face.

    A REGISTERED identity carries the enrollment descriptor as its descriptor of
    record; a QUARANTINED one carries the descriptor captured when the face was
    first seen. Display name and contact are unique among REGISTERED identities
    only; quarantines get placeholders derived from their id.
    """
    id: str = Field(default_factory=new_id, description="Unique identifier, never reused")
    role: Role = Field(..., description="Lifecycle tier")
    display_name: str = Field(..., description="Name shown to the user")
    contact: str = Field(..., description="Email-like contact handle")
    avatar_ref: Optional[str] = Field(None, description="Avatar URL for registered identities")
    descriptor: Descriptor = Field(..., description="Descriptor of record")
    attempt_log: List[AttemptRecord] = Field(default_factory=list, description="Chronological audit trail")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp (UTC)")
    last_seen_at: datetime = Field(default_factory=utcnow, description="Last successful match (UTC)")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("descriptor", mode="before")
    @classmethod
    def validate_descriptor(cls, v: Union[np.ndarray, list]) -> Descriptor:
        """Store the descriptor of record as an immutable descriptor."""
        return as_descriptor(v)

    @field_serializer("descriptor")
    def serialize_descriptor(self, v: Descriptor) -> List[float]:
        return v.tolist()

    @property
    def is_registered(self) -> bool:
        return self.role == Role.REGISTERED

    @classmethod
    def quarantine(cls, descriptor: Descriptor, seen_at: datetime) -> "Identity":
        """Create a quarantined identity for an unrecognized face.

        The returned identity already holds its QUARANTINED attempt record.

        Args:
            descriptor: Descriptor captured at the sighting
            seen_at: Time of the sighting

        Returns:
            Identity: New quarantined identity with placeholder name and contact
        """
        identity_id = new_id()
        return cls(
            id=identity_id,
            role=Role.QUARANTINED,
            display_name=f"Unknown {identity_id[:8]}",
            contact=f"unknown+{identity_id}@quarantine.local",
            descriptor=descriptor,
            attempt_log=[
                AttemptRecord(
                    timestamp=seen_at,
                    outcome=AttemptOutcome.QUARANTINED,
                    descriptor_snapshot=descriptor,
                )
            ],
            created_at=seen_at,
            last_seen_at=seen_at,
        )
