"""Credential issuer interface."""
from abc import ABC, abstractmethod

from ...value_objects.outcomes import Credential


class CredentialIssuer(ABC):
    """Interface for minting session credentials."""

    @abstractmethod
    def issue_credential(self, identity_id: str) -> Credential:
        """
        Mint a signed, expiring credential for an identity.

        Raises:
            CredentialIssuerError: If the credential cannot be signed
        """
        pass
