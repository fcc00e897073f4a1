"""Identity resolution value objects."""
from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from faceid.domain.entities.identity import Identity


class MatchStatus(str, Enum):
    """Result of the nearest-neighbour scan."""
    MATCHED = "matched"
    NO_MATCH = "no_match"


class MatchResult(BaseModel):
    """Result of matching one descriptor against registered identities."""
    status: MatchStatus = Field(..., description="Whether the best candidate was accepted")
    identity: Optional[Identity] = Field(None, description="Accepted identity, if any")
    distance: Optional[float] = Field(
        None, description="Distance to the best candidate, None when there were no candidates"
    )

    @property
    def matched(self) -> bool:
        return self.status == MatchStatus.MATCHED


class RejectReason(str, Enum):
    """Why an image could not be turned into a descriptor."""
    EMPTY_IMAGE = "EMPTY_IMAGE"
    INVALID_IMAGE = "INVALID_IMAGE"
    NO_FACE = "NO_FACE"
    MULTI_FACE = "MULTI_FACE"
    EXTRACTOR_TIMEOUT = "EXTRACTOR_TIMEOUT"
    INVALID_REGISTRATION = "INVALID_REGISTRATION"


class DuplicateReason(str, Enum):
    """Which uniqueness rule a registration violated."""
    DUPLICATE_CONTACT = "DUPLICATE_CONTACT"
    DUPLICATE_DISPLAY_NAME = "DUPLICATE_DISPLAY_NAME"
    DUPLICATE_FACE = "DUPLICATE_FACE"


class UnavailableReason(str, Enum):
    """Which collaborator could not be reached."""
    EXTRACTOR_UNAVAILABLE = "EXTRACTOR_UNAVAILABLE"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    CREDENTIAL_ISSUER_UNAVAILABLE = "CREDENTIAL_ISSUER_UNAVAILABLE"


class Credential(BaseModel):
    """Signed session credential issued for a resolved identity."""
    token: str = Field(..., description="Opaque signed token")
    expires_at: datetime = Field(..., description="Expiry of the token (UTC)")

    model_config = ConfigDict(frozen=True)


class Accepted(BaseModel):
    """The face resolved to a registered identity and a credential was issued."""
    status: Literal["accepted"] = "accepted"
    identity_id: str
    credential: Credential
    display_name: str
    avatar_ref: Optional[str] = None


class Quarantined(BaseModel):
    """The face was not recognized and a quarantine record was created."""
    status: Literal["quarantined"] = "quarantined"
    quarantine_id: str


class Rejected(BaseModel):
    """The image could not be used."""
    status: Literal["rejected"] = "rejected"
    reason: RejectReason
    message: str = ""


class DuplicateIdentity(BaseModel):
    """Registration conflicts with an existing registered identity."""
    status: Literal["duplicate"] = "duplicate"
    reason: DuplicateReason


class ServiceUnavailable(BaseModel):
    """A collaborator was unreachable; the caller decides whether to retry."""
    status: Literal["unavailable"] = "unavailable"
    reason: UnavailableReason
    message: str = ""


VerificationOutcome = Union[Accepted, Quarantined, Rejected, ServiceUnavailable]
RegistrationOutcome = Union[Accepted, Rejected, DuplicateIdentity, ServiceUnavailable]
