"""Credential interfaces."""
from .credential_issuer import CredentialIssuer

__all__ = ["CredentialIssuer"]
