"""Database infrastructure."""
from .identity_store import SqlIdentityStore

__all__ = ["SqlIdentityStore"]
