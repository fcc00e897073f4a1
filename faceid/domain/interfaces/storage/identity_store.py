"""Identity store interface."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ...entities.identity import AttemptRecord, Identity, Role


class IdentityStore(ABC):
    """Interface for durable storage of registered and quarantined identities.

    Concurrency contract: every operation is atomic for the single record it
    touches. Nothing spans records; callers order multi-record work so a
    failure can be compensated.
    """

    @abstractmethod
    async def find_by_role(self, role: Role) -> List[Identity]:
        """
        List identities of one role in insertion order.

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def find_by_contact(self, contact: str) -> Optional[Identity]:
        """
        Find the identity owning a contact handle.

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def get_by_id(self, identity_id: str) -> Optional[Identity]:
        """
        Fetch one identity by id.

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def insert(self, identity: Identity) -> None:
        """
        Insert a new identity together with its attempt log.

        Attempt records that already exist (moved from a promoted quarantine)
        are re-attached to the new identity, never rewritten.

        Raises:
            DuplicateContactError: If the contact is already taken
            DuplicateDisplayNameError: If a registered identity already uses the display name
            StoreUnavailableError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def update(self, identity: Identity) -> None:
        """
        Replace the stored fields of an existing identity.

        Attempt records are only ever appended; records already stored are left as they are.

        Raises:
            IdentityConflictError: If the new fields collide with another identity
            StoreUnavailableError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def delete_by_id(self, identity_id: str) -> Optional[Identity]:
        """
        Remove an identity and return it as it was just before removal.

        Idempotent: an absent id is a no-op returning None. When two callers
        race on the same id, exactly one of them receives the identity.

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def append_attempt(
        self,
        identity_id: str,
        record: AttemptRecord,
        seen_at: Optional[datetime] = None,
    ) -> Optional[Identity]:
        """
        Append one attempt record and optionally touch last_seen_at.

        Args:
            identity_id: Identity to append to
            record: Attempt record to append
            seen_at: New last_seen_at value, left unchanged when None

        Returns:
            The updated identity, or None if it no longer exists

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        pass
