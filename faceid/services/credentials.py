"""JWT-based session credential issuer."""
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import jwt

from faceid.core.config import settings
from faceid.core.exceptions import CredentialIssuerError
from faceid.core.logging import get_logger
from faceid.domain.entities.identity import utcnow
from faceid.domain.interfaces.credentials.credential_issuer import CredentialIssuer
from faceid.domain.value_objects.outcomes import Credential

logger = get_logger(__name__)


class JwtCredentialIssuer(CredentialIssuer):
    """Issues HMAC-signed JWTs whose subject is the identity id."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the issuer.

        Args:
            secret: Signing secret, defaults to settings.JWT_SECRET
            algorithm: JWT algorithm, defaults to settings.JWT_ALGORITHM
            ttl: Credential lifetime, defaults to settings.CREDENTIAL_TTL_DAYS
            clock: Source of the current UTC time
        """
        self._secret = secret or settings.JWT_SECRET
        self._algorithm = algorithm or settings.JWT_ALGORITHM
        self._ttl = ttl or timedelta(days=settings.CREDENTIAL_TTL_DAYS)
        self._clock = clock

    def issue_credential(self, identity_id: str) -> Credential:
        issued_at = self._clock()
        expires_at = issued_at + self._ttl
        payload = {"sub": identity_id, "iat": issued_at, "exp": expires_at}
        try:
            token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as e:
            logger.error("Credential signing failed", identity_id=identity_id, error=str(e))
            raise CredentialIssuerError(f"Failed to sign credential: {str(e)}")
        return Credential(token=token, expires_at=expires_at)

    def decode(self, token: str) -> Dict[str, Any]:
        """Verify a token issued by this issuer and return its claims.

        Raises:
            jwt.InvalidTokenError: If the token is malformed, forged or expired
        """
        return jwt.decode(token, self._secret, algorithms=[self._algorithm])
