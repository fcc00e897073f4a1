"""In-memory infrastructure."""
from .identity_store import InMemoryIdentityStore

__all__ = ["InMemoryIdentityStore"]
