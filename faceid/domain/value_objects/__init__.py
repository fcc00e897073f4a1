"""Value objects package."""
from .outcomes import (
    Accepted,
    Credential,
    DuplicateIdentity,
    DuplicateReason,
    MatchResult,
    MatchStatus,
    Quarantined,
    RegistrationOutcome,
    Rejected,
    RejectReason,
    ServiceUnavailable,
    UnavailableReason,
    VerificationOutcome,
)

__all__ = [
    "Accepted",
    "Credential",
    "DuplicateIdentity",
    "DuplicateReason",
    "MatchResult",
    "MatchStatus",
    "Quarantined",
    "RegistrationOutcome",
    "Rejected",
    "RejectReason",
    "ServiceUnavailable",
    "UnavailableReason",
    "VerificationOutcome",
]
