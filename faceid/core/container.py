"""Service container for dependency injection."""
from typing import Optional

from faceid.core.config import settings
from faceid.core.logging import get_logger
from faceid.domain.interfaces.credentials.credential_issuer import CredentialIssuer
from faceid.domain.interfaces.recognition.descriptor_extractor import DescriptorExtractor
from faceid.domain.interfaces.storage.identity_store import IdentityStore
from faceid.infrastructure.database.identity_store import SqlIdentityStore
from faceid.infrastructure.memory.identity_store import InMemoryIdentityStore
from faceid.services.credentials import JwtCredentialIssuer
from faceid.services.enrollment import EnrollmentService
from faceid.services.matching import EuclideanMatcher

logger = get_logger(__name__)


class ServiceContainer:
    """Container for application services.

    This container manages the lifecycle and dependencies of all services in the application.
    It ensures proper initialization order and provides a single source of truth for service instances.

    Example:
        ```python
        container = ServiceContainer()
        await container.initialize()

        enrollment = container.enrollment_service
        ```
    """

    def __init__(self) -> None:
        """Initialize empty container."""
        # Core services - Use interface type hints
        self.identity_store: Optional[IdentityStore] = None
        self.descriptor_extractor: Optional[DescriptorExtractor] = None
        self.credential_issuer: Optional[CredentialIssuer] = None
        self.matcher: Optional[EuclideanMatcher] = None

        # Domain services (depend on interfaces)
        self.enrollment_service: Optional[EnrollmentService] = None

    def _build_store(self) -> IdentityStore:
        if settings.IDENTITY_STORE == "sql":
            return SqlIdentityStore.from_url(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
        if settings.IDENTITY_STORE == "memory":
            return InMemoryIdentityStore()
        raise ValueError(f"Unknown IDENTITY_STORE: {settings.IDENTITY_STORE}")

    def _build_extractor(self) -> DescriptorExtractor:
        # Heavy optional dependency, only loaded when the service actually starts
        from faceid.services.recognition.insight_face import InsightFaceDescriptorExtractor

        return InsightFaceDescriptorExtractor()

    async def initialize(
        self,
        identity_store: Optional[IdentityStore] = None,
        descriptor_extractor: Optional[DescriptorExtractor] = None,
        credential_issuer: Optional[CredentialIssuer] = None,
    ) -> None:
        """Initialize all services in the correct order.

        Args:
            identity_store: Store to use instead of the one configured in settings
            descriptor_extractor: Extractor to use instead of InsightFace
            credential_issuer: Issuer to use instead of the JWT issuer
        """
        self.identity_store = identity_store or self._build_store()
        if isinstance(self.identity_store, SqlIdentityStore):
            await self.identity_store.create_schema()
        self.descriptor_extractor = descriptor_extractor or self._build_extractor()
        self.credential_issuer = credential_issuer or JwtCredentialIssuer()
        self.matcher = EuclideanMatcher(threshold=settings.MATCH_THRESHOLD)
        self.enrollment_service = EnrollmentService(
            extractor=self.descriptor_extractor,
            store=self.identity_store,
            matcher=self.matcher,
            issuer=self.credential_issuer,
        )
        logger.info(
            "Service container initialized",
            store=type(self.identity_store).__name__,
            extractor=type(self.descriptor_extractor).__name__,
            match_threshold=self.matcher.threshold,
        )

    async def cleanup(self) -> None:
        """Cleanup all services in reverse order of initialization."""
        self.enrollment_service = None
        self.matcher = None
        self.credential_issuer = None
        self.descriptor_extractor = None

        if isinstance(self.identity_store, SqlIdentityStore):
            await self.identity_store.close()
        self.identity_store = None


# Global container instance
container = ServiceContainer()
