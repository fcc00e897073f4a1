"""FastAPI dependency providers."""
from typing import AsyncGenerator

from fastapi import Depends

from faceid.core.container import ServiceContainer, container
from faceid.core.exceptions import ServiceNotInitializedError
from faceid.services.credentials import JwtCredentialIssuer
from faceid.services.enrollment import EnrollmentService


async def get_container() -> ServiceContainer:
    """Dependency provider for the global ServiceContainer instance."""
    if container.enrollment_service is None:
        raise ServiceNotInitializedError("Service container is not initialized")
    return container


async def get_enrollment_service(
    cont: ServiceContainer = Depends(get_container),
) -> AsyncGenerator[EnrollmentService, None]:
    """Provide the enrollment service.

    Yields:
        EnrollmentService: Initialized enrollment service
    """
    yield cont.enrollment_service


async def get_credential_issuer(
    cont: ServiceContainer = Depends(get_container),
) -> AsyncGenerator[JwtCredentialIssuer, None]:
    """Provide the credential issuer used to verify bearer tokens.

    Raises:
        ServiceNotInitializedError: If the configured issuer cannot verify tokens
    """
    if not isinstance(cont.credential_issuer, JwtCredentialIssuer):
        raise ServiceNotInitializedError("Credential issuer cannot verify tokens")
    yield cont.credential_issuer
