"""API specific identity models."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from faceid.domain.entities.identity import AttemptOutcome, Identity
from faceid.domain.value_objects.outcomes import Accepted


class UserResponse(BaseModel):
    """Registered identity as shown to the client."""
    id: str = Field(..., description="Identity identifier")
    name: str = Field(..., description="Display name")
    email: Optional[str] = Field(None, description="Contact handle")
    avatar: Optional[str] = Field(None, description="Avatar URL")


class VerifyFaceResponse(BaseModel):
    """Response model for the /verify-face endpoint."""
    verified: bool = Field(..., description="Whether the face resolved to a registered identity")
    token: Optional[str] = Field(None, description="Session credential when verified")
    expires_at: Optional[datetime] = Field(None, description="Credential expiry when verified")
    user: Optional[UserResponse] = Field(None, description="Resolved identity when verified")
    unknown_face_id: Optional[str] = Field(
        None, description="Quarantine id to pass to /register-face when not verified"
    )

    @classmethod
    def from_accepted(cls, outcome: Accepted) -> "VerifyFaceResponse":
        return cls(
            verified=True,
            token=outcome.credential.token,
            expires_at=outcome.credential.expires_at,
            user=UserResponse(
                id=outcome.identity_id,
                name=outcome.display_name,
                avatar=outcome.avatar_ref,
            ),
        )


class RegisterFaceResponse(BaseModel):
    """Response model for the /register-face endpoint."""
    success: bool = Field(True, description="Always true on a 200 response")
    token: str = Field(..., description="Session credential")
    expires_at: datetime = Field(..., description="Credential expiry")
    user: UserResponse = Field(..., description="Newly registered identity")

    @classmethod
    def from_accepted(cls, outcome: Accepted, email: str) -> "RegisterFaceResponse":
        return cls(
            token=outcome.credential.token,
            expires_at=outcome.credential.expires_at,
            user=UserResponse(
                id=outcome.identity_id,
                name=outcome.display_name,
                email=email,
                avatar=outcome.avatar_ref,
            ),
        )


class AttemptSummary(BaseModel):
    """One attempt record without its descriptor snapshot."""
    timestamp: datetime
    outcome: AttemptOutcome


class UnknownFaceResponse(BaseModel):
    """Quarantined identity awaiting administrative review."""
    id: str = Field(..., description="Quarantine identifier")
    created_at: datetime = Field(..., description="First sighting")
    last_seen_at: datetime = Field(..., description="Last update")
    attempts: int = Field(..., description="Number of attempt records")

    @classmethod
    def from_identity(cls, identity: Identity) -> "UnknownFaceResponse":
        return cls(
            id=identity.id,
            created_at=identity.created_at,
            last_seen_at=identity.last_seen_at,
            attempts=len(identity.attempt_log),
        )


class IdentityDetailResponse(BaseModel):
    """Identity with its audit trail."""
    user: UserResponse
    created_at: datetime
    last_seen_at: datetime
    attempts: List[AttemptSummary]

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityDetailResponse":
        return cls(
            user=UserResponse(
                id=identity.id,
                name=identity.display_name,
                email=identity.contact,
                avatar=identity.avatar_ref,
            ),
            created_at=identity.created_at,
            last_seen_at=identity.last_seen_at,
            attempts=[
                AttemptSummary(timestamp=r.timestamp, outcome=r.outcome)
                for r in identity.attempt_log
            ],
        )


class ErrorDetail(BaseModel):
    """Machine-checkable error body."""
    reason: str = Field(..., description="Reason code")
    message: str = Field("", description="Human readable explanation")
