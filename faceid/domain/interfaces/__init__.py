"""Service interfaces package."""
from .credentials import CredentialIssuer
from .recognition import DescriptorExtractor
from .storage import IdentityStore

__all__ = ["CredentialIssuer", "DescriptorExtractor", "IdentityStore"]
