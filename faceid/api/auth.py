"""Face authentication API endpoints."""
from typing import List, NoReturn, Optional

import jwt
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from faceid.api.models.auth import (
    ErrorDetail,
    IdentityDetailResponse,
    RegisterFaceResponse,
    UnknownFaceResponse,
    VerifyFaceResponse,
)
from faceid.core.config import settings
from faceid.core.exceptions import StoreUnavailableError
from faceid.core.logging import get_logger
from faceid.domain.value_objects.outcomes import (
    Accepted,
    DuplicateIdentity,
    Quarantined,
    Rejected,
    ServiceUnavailable,
)
from faceid.infrastructure.dependencies import get_credential_issuer, get_enrollment_service
from faceid.services.credentials import JwtCredentialIssuer
from faceid.services.enrollment import EnrollmentService, normalize_contact

logger = get_logger(__name__)
bearer = HTTPBearer(auto_error=False)
router = APIRouter(
    tags=["auth"],
    responses={
        400: {"description": "Unusable image or request", "model": ErrorDetail},
        503: {"description": "A collaborator is unavailable", "model": ErrorDetail},
    }
)


def _fail(status_code: int, reason: str, message: str = "") -> NoReturn:
    raise HTTPException(
        status_code=status_code,
        detail=ErrorDetail(reason=reason, message=message).model_dump(),
    )


async def _read_image(face_image: UploadFile) -> bytes:
    # One byte past the limit is enough to tell an oversized upload
    image_bytes = await face_image.read(settings.MAX_IMAGE_BYTES + 1)
    if len(image_bytes) > settings.MAX_IMAGE_BYTES:
        _fail(413, "IMAGE_TOO_LARGE", f"Image exceeds {settings.MAX_IMAGE_BYTES} bytes")
    return image_bytes


def _fail_for(outcome) -> NoReturn:
    if isinstance(outcome, Rejected):
        _fail(400, outcome.reason.value, outcome.message)
    if isinstance(outcome, DuplicateIdentity):
        _fail(409, outcome.reason.value, "User already exists with this email, name or face")
    if isinstance(outcome, ServiceUnavailable):
        _fail(503, outcome.reason.value, outcome.message)
    raise TypeError(f"Unexpected outcome: {outcome!r}")


@router.post(
    "/verify-face",
    response_model=VerifyFaceResponse,
    summary="Verify a face",
    description="Resolves the face in the image to a registered user, or quarantines it as unknown.",
)
async def verify_face(
    face_image: UploadFile = File(..., alias="faceImage"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> VerifyFaceResponse:
    """Verify the face in an uploaded image.

    Returns:
        VerifyFaceResponse with a credential when verified, or the quarantine id otherwise

    Raises:
        HTTPException: 400 for unusable images, 503 when a collaborator is down
    """
    outcome = await service.verify(await _read_image(face_image))
    if isinstance(outcome, Accepted):
        return VerifyFaceResponse.from_accepted(outcome)
    if isinstance(outcome, Quarantined):
        return VerifyFaceResponse(verified=False, unknown_face_id=outcome.quarantine_id)
    _fail_for(outcome)


@router.post(
    "/register-face",
    response_model=RegisterFaceResponse,
    summary="Register a face",
    description="Registers a new user, promoting an unknown face when its id is supplied.",
    responses={409: {"description": "User already exists", "model": ErrorDetail}},
)
async def register_face(
    name: str = Form(...),
    email: str = Form(...),
    unknown_face_id: Optional[str] = Form(None, alias="unknownFaceId"),
    face_image: UploadFile = File(..., alias="faceImage"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> RegisterFaceResponse:
    """Register a user with the face in an uploaded image.

    Raises:
        HTTPException: 400, 409 or 503 depending on the outcome
    """
    outcome = await service.register(
        display_name=name,
        contact=email,
        image_bytes=await _read_image(face_image),
        quarantine_id=unknown_face_id or None,
    )
    if isinstance(outcome, Accepted):
        return RegisterFaceResponse.from_accepted(outcome, email=normalize_contact(email))
    _fail_for(outcome)


@router.get(
    "/unknown-faces",
    response_model=List[UnknownFaceResponse],
    summary="List unknown faces",
    description="Quarantined faces, newest first, for administrative review.",
)
async def unknown_faces(
    limit: int = Query(settings.QUARANTINE_LIST_LIMIT, ge=1, le=1000),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> List[UnknownFaceResponse]:
    try:
        quarantined = await service.list_quarantined(limit=limit)
    except StoreUnavailableError as e:
        logger.error("Failed to fetch unknown faces", error=str(e))
        _fail(503, "STORE_UNAVAILABLE", str(e))
    return [UnknownFaceResponse.from_identity(identity) for identity in quarantined]


@router.get(
    "/me",
    response_model=IdentityDetailResponse,
    summary="Current identity",
    description="The identity behind a bearer credential, with its attempt history.",
    responses={401: {"description": "Missing or invalid credential", "model": ErrorDetail}},
)
async def me(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    issuer: JwtCredentialIssuer = Depends(get_credential_issuer),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> IdentityDetailResponse:
    if credentials is None:
        _fail(401, "MISSING_CREDENTIAL")
    try:
        claims = issuer.decode(credentials.credentials)
    except jwt.InvalidTokenError as e:
        logger.warning("Rejected bearer credential", error=str(e))
        _fail(401, "INVALID_CREDENTIAL", str(e))

    try:
        identity = await service.get_identity(claims["sub"])
    except StoreUnavailableError as e:
        _fail(503, "STORE_UNAVAILABLE", str(e))
    if identity is None:
        _fail(404, "UNKNOWN_IDENTITY")
    return IdentityDetailResponse.from_identity(identity)
