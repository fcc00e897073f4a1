"""Unit of work over one identity store transaction."""
from types import TracebackType
from typing import Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from faceid.core.logging import get_logger
from faceid.infrastructure.database.repositories import IdentityRepository

logger = get_logger(__name__)


class UnitOfWork:
    """Opens a session, exposes its repository and ends the transaction on exit.

    The transaction commits when the block completes and rolls back when it
    raises. The session is closed either way.

    Example:
        ```python
        async with UnitOfWork(session_factory) as uow:
            row = await uow.identities.get_by_id(identity_id)
        ```
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None
        self.identities: Optional[IdentityRepository] = None

    async def __aenter__(self) -> "UnitOfWork":
        self._session = self._session_factory()
        self.identities = IdentityRepository(self._session)
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        try:
            if exc_type is None:
                await self.commit()
            else:
                logger.debug("Rolling back identity store transaction", error=str(exc_val))
                await self.rollback()
        finally:
            await self._session.close()
            self._session = None
            self.identities = None

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        await self._session.rollback()
