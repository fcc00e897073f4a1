"""Enrollment service: verification, registration and promotion of identities."""
import asyncio
from datetime import datetime
from typing import Callable, List, Optional, Union
from urllib.parse import quote_plus

from faceid.core.config import settings
from faceid.core.exceptions import (
    CredentialIssuerError,
    DuplicateContactError,
    DuplicateDisplayNameError,
    ExtractorUnavailableError,
    IdentityConflictError,
    IdentityStoreError,
    InvalidImageError,
    MultipleFacesError,
    NoFaceDetectedError,
    StoreUnavailableError,
)
from faceid.core.logging import get_logger
from faceid.domain.entities.identity import (
    AttemptOutcome,
    AttemptRecord,
    Descriptor,
    Identity,
    Role,
    new_id,
    utcnow,
)
from faceid.domain.interfaces.credentials.credential_issuer import CredentialIssuer
from faceid.domain.interfaces.recognition.descriptor_extractor import DescriptorExtractor
from faceid.domain.interfaces.storage.identity_store import IdentityStore
from faceid.domain.value_objects.outcomes import (
    Accepted,
    DuplicateIdentity,
    DuplicateReason,
    Quarantined,
    RegistrationOutcome,
    Rejected,
    RejectReason,
    ServiceUnavailable,
    UnavailableReason,
    VerificationOutcome,
)
from faceid.services.matching import EuclideanMatcher

logger = get_logger(__name__)


def normalize_contact(contact: str) -> str:
    """Trim and lower-case a contact handle."""
    return contact.strip().lower()


def render_avatar(display_name: str, template: Optional[str] = None) -> str:
    """Render the avatar URL for a registered identity."""
    return (template or settings.AVATAR_URL_TEMPLATE).format(name=quote_plus(display_name))


class EnrollmentService:
    """Resolves face images to identities and promotes quarantined faces.

    Verification either accepts a registered identity (credential issued, attempt
    recorded, last_seen_at refreshed), quarantines an unrecognized face as a new
    identity, or rejects an unusable image. Registration creates a registered
    identity and, when given a quarantine id it can still claim, moves that
    quarantine's attempt history onto it.

    Collaborator failures are returned as ServiceUnavailable outcomes; the
    service never retries on its own.

    Example:
        ```python
        service = EnrollmentService(
            extractor=InsightFaceDescriptorExtractor(),
            store=InMemoryIdentityStore(),
            matcher=EuclideanMatcher(),
            issuer=JwtCredentialIssuer(),
        )
        outcome = await service.verify(image_bytes)
        if isinstance(outcome, Quarantined):
            outcome = await service.register("Ann", "ann@x.com", image_bytes, outcome.quarantine_id)
        ```
    """

    def __init__(
        self,
        extractor: DescriptorExtractor,
        store: IdentityStore,
        matcher: EuclideanMatcher,
        issuer: CredentialIssuer,
        extractor_timeout: Optional[float] = None,
        registration_threshold: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the enrollment service.

        Args:
            extractor: Turns an image into one descriptor
            store: Identity store shared with concurrent requests
            matcher: Nearest-neighbour matcher
            issuer: Mints credentials for accepted identities
            extractor_timeout: Seconds before extraction counts as timed out
            registration_threshold: Distance for the duplicate-face check on registration
            clock: Source of the current UTC time
        """
        self.extractor = extractor
        self.store = store
        self.matcher = matcher
        self.issuer = issuer
        self.extractor_timeout = (
            settings.EXTRACTOR_TIMEOUT_SECONDS if extractor_timeout is None else extractor_timeout
        )
        self.registration_threshold = (
            settings.registration_match_threshold
            if registration_threshold is None
            else registration_threshold
        )
        self._clock = clock

    async def _extract(self, image_bytes: bytes) -> Union[Descriptor, Rejected, ServiceUnavailable]:
        """Run the extractor, mapping its failures to outcomes.

        No attempt record is written for any of these outcomes; they are logged instead.
        """
        if not image_bytes:
            return self._reject(RejectReason.EMPTY_IMAGE, "No face image provided")
        try:
            return await asyncio.wait_for(
                self.extractor.extract_descriptor(image_bytes),
                timeout=self.extractor_timeout,
            )
        except asyncio.TimeoutError:
            return self._reject(
                RejectReason.EXTRACTOR_TIMEOUT,
                f"Face extraction exceeded {self.extractor_timeout}s",
            )
        except NoFaceDetectedError as e:
            return self._reject(RejectReason.NO_FACE, str(e))
        except MultipleFacesError as e:
            return self._reject(RejectReason.MULTI_FACE, str(e))
        except InvalidImageError as e:
            return self._reject(RejectReason.INVALID_IMAGE, str(e))
        except ExtractorUnavailableError as e:
            return self._unavailable(UnavailableReason.EXTRACTOR_UNAVAILABLE, str(e))

    @staticmethod
    def _reject(reason: RejectReason, message: str) -> Rejected:
        logger.warning("Image rejected", reason=reason.value, message=message)
        return Rejected(reason=reason, message=message)

    @staticmethod
    def _unavailable(reason: UnavailableReason, message: str) -> ServiceUnavailable:
        logger.error("Collaborator unavailable", reason=reason.value, message=message)
        return ServiceUnavailable(reason=reason, message=message)

    async def verify(self, image_bytes: bytes) -> VerificationOutcome:
        """Resolve a face image to a registered identity, or quarantine it.

        Args:
            image_bytes: Raw image data containing one face

        Returns:
            Accepted with a fresh credential, Quarantined with the new
            quarantine id, Rejected with a reason, or ServiceUnavailable
        """
        descriptor = await self._extract(image_bytes)
        if isinstance(descriptor, (Rejected, ServiceUnavailable)):
            return descriptor

        try:
            registered = await self.store.find_by_role(Role.REGISTERED)
        except StoreUnavailableError as e:
            return self._unavailable(UnavailableReason.STORE_UNAVAILABLE, str(e))

        result = self.matcher.match(descriptor, registered)
        now = self._clock()

        if result.matched:
            identity = result.identity
            try:
                credential = self.issuer.issue_credential(identity.id)
            except CredentialIssuerError as e:
                return self._unavailable(UnavailableReason.CREDENTIAL_ISSUER_UNAVAILABLE, str(e))

            record = AttemptRecord(
                timestamp=now,
                outcome=AttemptOutcome.MATCHED,
                descriptor_snapshot=descriptor,
            )
            try:
                updated = await self.store.append_attempt(identity.id, record, seen_at=now)
            except StoreUnavailableError as e:
                return self._unavailable(UnavailableReason.STORE_UNAVAILABLE, str(e))

            if updated is not None:
                logger.info(
                    "Face verified",
                    identity_id=identity.id,
                    distance=result.distance,
                    attempts=len(updated.attempt_log),
                )
                return Accepted(
                    identity_id=identity.id,
                    credential=credential,
                    display_name=updated.display_name,
                    avatar_ref=updated.avatar_ref,
                )
            logger.warning(
                "Matched identity disappeared before recording, quarantining instead",
                identity_id=identity.id,
            )

        quarantine = Identity.quarantine(descriptor, seen_at=now)
        try:
            await self.store.insert(quarantine)
        except StoreUnavailableError as e:
            return self._unavailable(UnavailableReason.STORE_UNAVAILABLE, str(e))
        except IdentityConflictError as e:
            # Placeholders derive from a fresh UUID; a collision means the store is inconsistent
            logger.error(
                "Quarantine placeholder collided with a stored identity",
                quarantine_id=quarantine.id,
                contact=quarantine.contact,
                error=str(e),
                details=e.details,
            )
            return self._unavailable(
                UnavailableReason.STORE_UNAVAILABLE, f"Quarantine insert conflicted: {str(e)}"
            )

        logger.info(
            "Unrecognized face quarantined",
            quarantine_id=quarantine.id,
            best_distance=result.distance,
            registered_count=len(registered),
        )
        return Quarantined(quarantine_id=quarantine.id)

    async def register(
        self,
        display_name: str,
        contact: str,
        image_bytes: bytes,
        quarantine_id: Optional[str] = None,
    ) -> RegistrationOutcome:
        """Register a new identity, promoting a quarantined face when possible.

        The quarantine is claimed through the store's idempotent delete before
        the new identity is inserted, so only one of several concurrent
        promotions inherits its history. A quarantine that is already gone is
        not an error: the registration proceeds as a fresh one. If inserting
        the new identity fails, the claimed quarantine is put back.

        Args:
            display_name: Name for the new identity
            contact: Email-like contact handle
            image_bytes: Raw image data containing one face
            quarantine_id: Quarantined identity to promote, if any

        Returns:
            Accepted, Rejected, DuplicateIdentity or ServiceUnavailable
        """
        display_name = (display_name or "").strip()
        contact = normalize_contact(contact or "")
        if not display_name or not contact:
            return self._reject(
                RejectReason.INVALID_REGISTRATION, "Display name and contact are required"
            )

        descriptor = await self._extract(image_bytes)
        if isinstance(descriptor, (Rejected, ServiceUnavailable)):
            return descriptor

        try:
            owner = await self.store.find_by_contact(contact)
            registered = await self.store.find_by_role(Role.REGISTERED)
        except StoreUnavailableError as e:
            return self._unavailable(UnavailableReason.STORE_UNAVAILABLE, str(e))

        duplicate = self._find_duplicate(contact, display_name, descriptor, owner, registered)
        if duplicate is not None:
            logger.warning("Registration conflicts with existing identity", reason=duplicate.value)
            return DuplicateIdentity(reason=duplicate)

        identity_id = new_id()
        try:
            credential = self.issuer.issue_credential(identity_id)
        except CredentialIssuerError as e:
            return self._unavailable(UnavailableReason.CREDENTIAL_ISSUER_UNAVAILABLE, str(e))

        try:
            claimed = await self._claim_quarantine(quarantine_id)
        except StoreUnavailableError as e:
            return self._unavailable(UnavailableReason.STORE_UNAVAILABLE, str(e))

        now = self._clock()
        seed = AttemptRecord(
            timestamp=now,
            outcome=AttemptOutcome.MATCHED,
            descriptor_snapshot=descriptor,
        )
        history: List[AttemptRecord] = list(claimed.attempt_log) if claimed else []
        # Stable sort keeps insertion order for equal timestamps
        attempt_log = sorted(history + [seed], key=lambda r: r.timestamp)

        identity = Identity(
            id=identity_id,
            role=Role.REGISTERED,
            display_name=display_name,
            contact=contact,
            avatar_ref=render_avatar(display_name),
            descriptor=descriptor,
            attempt_log=attempt_log,
            created_at=now,
            last_seen_at=now,
        )

        try:
            await self.store.insert(identity)
        except DuplicateContactError:
            await self._restore_quarantine(claimed)
            logger.warning("Contact registered concurrently", contact=contact)
            return DuplicateIdentity(reason=DuplicateReason.DUPLICATE_CONTACT)
        except DuplicateDisplayNameError:
            await self._restore_quarantine(claimed)
            logger.warning("Display name registered concurrently", display_name=display_name)
            return DuplicateIdentity(reason=DuplicateReason.DUPLICATE_DISPLAY_NAME)
        except StoreUnavailableError as e:
            await self._restore_quarantine(claimed)
            return self._unavailable(UnavailableReason.STORE_UNAVAILABLE, str(e))

        logger.info(
            "Identity registered",
            identity_id=identity.id,
            promoted_from=claimed.id if claimed else None,
            attempts=len(identity.attempt_log),
        )
        return Accepted(
            identity_id=identity.id,
            credential=credential,
            display_name=identity.display_name,
            avatar_ref=identity.avatar_ref,
        )

    def _find_duplicate(
        self,
        contact: str,
        display_name: str,
        descriptor: Descriptor,
        owner: Optional[Identity],
        registered: List[Identity],
    ) -> Optional[DuplicateReason]:
        if owner is not None and owner.is_registered:
            return DuplicateReason.DUPLICATE_CONTACT
        if any(i.display_name == display_name for i in registered):
            return DuplicateReason.DUPLICATE_DISPLAY_NAME
        result = self.matcher.match(descriptor, registered, threshold=self.registration_threshold)
        if result.matched:
            logger.info(
                "Face already registered",
                identity_id=result.identity.id,
                distance=result.distance,
            )
            return DuplicateReason.DUPLICATE_FACE
        return None

    async def _claim_quarantine(self, quarantine_id: Optional[str]) -> Optional[Identity]:
        """Remove the quarantine and return it, or None if it cannot be claimed."""
        if not quarantine_id:
            return None
        candidate = await self.store.get_by_id(quarantine_id)
        if candidate is None or candidate.role != Role.QUARANTINED:
            logger.info(
                "Quarantine not available for promotion, registering fresh",
                quarantine_id=quarantine_id,
                found=candidate is not None,
            )
            return None
        claimed = await self.store.delete_by_id(quarantine_id)
        if claimed is None:
            logger.info("Quarantine promoted concurrently, registering fresh", quarantine_id=quarantine_id)
        return claimed

    async def _restore_quarantine(self, claimed: Optional[Identity]) -> None:
        """Compensate a claimed quarantine after the new identity failed to insert."""
        if claimed is None:
            return
        try:
            await self.store.insert(claimed)
            logger.info("Restored quarantine after failed registration", quarantine_id=claimed.id)
        except IdentityStoreError as e:
            logger.error(
                "Failed to restore quarantine after failed registration",
                quarantine_id=claimed.id,
                attempts=len(claimed.attempt_log),
                error=str(e),
                exc_info=True,
            )

    async def list_quarantined(self, limit: Optional[int] = None) -> List[Identity]:
        """List quarantined identities, newest first.

        Args:
            limit: Maximum number of identities, defaults to settings.QUARANTINE_LIST_LIMIT

        Returns:
            Quarantined identities ordered by created_at descending

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        limit = settings.QUARANTINE_LIST_LIMIT if limit is None else limit
        quarantined = await self.store.find_by_role(Role.QUARANTINED)
        # Reverse first so that equal timestamps list the later insertion first
        ordered = sorted(reversed(quarantined), key=lambda i: i.created_at, reverse=True)
        return ordered[:max(limit, 0)]

    async def get_identity(self, identity_id: str) -> Optional[Identity]:
        """Fetch an identity with its attempt log.

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        return await self.store.get_by_id(identity_id)
