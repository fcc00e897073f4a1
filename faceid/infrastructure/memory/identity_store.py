"""In-process identity store."""
import asyncio
from datetime import datetime
from typing import Dict, List, Optional

from faceid.core.exceptions import DuplicateContactError, DuplicateDisplayNameError
from faceid.core.logging import get_logger
from faceid.domain.entities.identity import AttemptRecord, Identity, Role
from faceid.domain.interfaces.storage.identity_store import IdentityStore

logger = get_logger(__name__)


def _detached(identity: Identity) -> Identity:
    # Records and descriptors are immutable, so only the log list needs its own copy
    return identity.model_copy(update={"attempt_log": list(identity.attempt_log)})


class InMemoryIdentityStore(IdentityStore):
    """Identity store kept in a dict guarded by an asyncio lock.

    Suitable for development and tests. Identities are copied on the way in
    and out so callers never share state with the store. Dict order is
    insertion order, which ``find_by_role`` relies on.
    """

    def __init__(self) -> None:
        self._identities: Dict[str, Identity] = {}
        self._lock = asyncio.Lock()

    def _check_unique(self, identity: Identity) -> None:
        for other in self._identities.values():
            if other.id == identity.id:
                continue
            if other.contact == identity.contact:
                raise DuplicateContactError(
                    f"Contact already registered: {identity.contact}",
                    details={"contact": identity.contact},
                )
            if (
                identity.is_registered
                and other.is_registered
                and other.display_name == identity.display_name
            ):
                raise DuplicateDisplayNameError(
                    f"Display name already registered: {identity.display_name}",
                    details={"display_name": identity.display_name},
                )

    async def find_by_role(self, role: Role) -> List[Identity]:
        async with self._lock:
            return [_detached(i) for i in self._identities.values() if i.role == role]

    async def find_by_contact(self, contact: str) -> Optional[Identity]:
        async with self._lock:
            for identity in self._identities.values():
                if identity.contact == contact:
                    return _detached(identity)
            return None

    async def get_by_id(self, identity_id: str) -> Optional[Identity]:
        async with self._lock:
            identity = self._identities.get(identity_id)
            return _detached(identity) if identity else None

    async def insert(self, identity: Identity) -> None:
        async with self._lock:
            if identity.id in self._identities:
                raise ValueError(f"Identity already exists: {identity.id}")
            self._check_unique(identity)
            self._identities[identity.id] = _detached(identity)
            logger.debug("Inserted identity", identity_id=identity.id, role=identity.role.value)

    async def update(self, identity: Identity) -> None:
        async with self._lock:
            current = self._identities.get(identity.id)
            if current is None:
                logger.warning("Update of missing identity ignored", identity_id=identity.id)
                return
            self._check_unique(identity)
            known = {r.record_id for r in current.attempt_log}
            appended = [r for r in identity.attempt_log if r.record_id not in known]
            self._identities[identity.id] = identity.model_copy(
                update={"attempt_log": current.attempt_log + appended}
            )

    async def delete_by_id(self, identity_id: str) -> Optional[Identity]:
        async with self._lock:
            removed = self._identities.pop(identity_id, None)
            if removed is not None:
                logger.debug("Deleted identity", identity_id=identity_id)
            return removed

    async def append_attempt(
        self,
        identity_id: str,
        record: AttemptRecord,
        seen_at: Optional[datetime] = None,
    ) -> Optional[Identity]:
        async with self._lock:
            current = self._identities.get(identity_id)
            if current is None:
                return None
            changes = {"attempt_log": current.attempt_log + [record]}
            if seen_at is not None:
                changes["last_seen_at"] = seen_at
            updated = current.model_copy(update=changes)
            self._identities[identity_id] = updated
            return _detached(updated)
