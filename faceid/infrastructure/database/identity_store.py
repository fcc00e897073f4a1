"""SQLAlchemy-backed identity store."""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from faceid.core.exceptions import (
    DuplicateContactError,
    DuplicateDisplayNameError,
    StoreUnavailableError,
)
from faceid.core.logging import get_logger
from faceid.domain.entities.identity import AttemptRecord, Identity, Role
from faceid.domain.interfaces.storage.identity_store import IdentityStore
from faceid.infrastructure.database.models import Base
from faceid.infrastructure.database.repositories import to_identity
from faceid.infrastructure.database.session import create_engine, create_session_factory
from faceid.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


class SqlIdentityStore(IdentityStore):
    """Identity store persisted through SQLAlchemy.

    Every operation runs in its own unit of work, so each is atomic for the
    record it touches. Contact uniqueness and display-name uniqueness among
    registered identities are enforced by the schema.

    Example:
        ```python
        store = SqlIdentityStore.from_url("postgresql+asyncpg://user:pw@db/faceid")
        await store.create_schema()
        registered = await store.find_by_role(Role.REGISTERED)
        await store.close()
        ```
    """

    def __init__(self, engine: AsyncEngine) -> None:
        """Initialize the store.

        Args:
            engine: Async engine to run against
        """
        self._engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlIdentityStore":
        """Build a store with its own engine."""
        return cls(create_engine(database_url, echo=echo))

    async def create_schema(self) -> None:
        """Create tables that do not exist yet."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Identity store schema ready")

    async def close(self) -> None:
        """Dispose of the engine's connection pool."""
        await self._engine.dispose()

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncGenerator[UnitOfWork, None]:
        try:
            async with UnitOfWork(self._session_factory) as uow:
                yield uow
        except IntegrityError as e:
            if "registered_name" in str(e.orig):
                raise DuplicateDisplayNameError(
                    "Display name already registered",
                    details={"error": str(e.orig)},
                )
            raise DuplicateContactError(
                "Identity conflicts with an existing record",
                details={"error": str(e.orig)},
            )
        except (SQLAlchemyError, OSError) as e:
            logger.error("Identity store unavailable", error=str(e))
            raise StoreUnavailableError(f"Identity store unavailable: {str(e)}")

    async def find_by_role(self, role: Role) -> List[Identity]:
        async with self._unit_of_work() as uow:
            rows = await uow.identities.list_by_role(role)
            return [to_identity(row) for row in rows]

    async def find_by_contact(self, contact: str) -> Optional[Identity]:
        async with self._unit_of_work() as uow:
            row = await uow.identities.get_by_contact(contact)
            return to_identity(row) if row else None

    async def get_by_id(self, identity_id: str) -> Optional[Identity]:
        async with self._unit_of_work() as uow:
            row = await uow.identities.get_by_id(identity_id)
            return to_identity(row) if row else None

    async def insert(self, identity: Identity) -> None:
        async with self._unit_of_work() as uow:
            await uow.identities.create(identity)
        logger.debug("Inserted identity", identity_id=identity.id, role=identity.role.value)

    async def update(self, identity: Identity) -> None:
        async with self._unit_of_work() as uow:
            if not await uow.identities.update_fields(identity):
                logger.warning("Update of missing identity ignored", identity_id=identity.id)
                return
            await uow.identities.attach_records(identity.id, identity.attempt_log)

    async def delete_by_id(self, identity_id: str) -> Optional[Identity]:
        async with self._unit_of_work() as uow:
            row = await uow.identities.get_by_id(identity_id)
            if row is None:
                return None
            identity = to_identity(row)
            if not await uow.identities.delete(identity_id):
                # Removed by a concurrent caller between the read and the delete
                await uow.rollback()
                return None
        logger.debug("Deleted identity", identity_id=identity_id)
        return identity

    async def append_attempt(
        self,
        identity_id: str,
        record: AttemptRecord,
        seen_at: Optional[datetime] = None,
    ) -> Optional[Identity]:
        async with self._unit_of_work() as uow:
            if seen_at is not None:
                found = await uow.identities.touch(identity_id, seen_at)
            else:
                found = await uow.identities.get_by_id(identity_id) is not None
            if not found:
                return None
            await uow.identities.attach_records(identity_id, [record])
            row = await uow.identities.get_by_id(identity_id)
            return to_identity(row) if row else None
