"""Database repositories for the face identity service."""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from faceid.domain.entities.identity import AttemptOutcome, AttemptRecord, Identity, Role
from faceid.infrastructure.database.models import AttemptRow, IdentityRow


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _registered_name(identity: Identity) -> Optional[str]:
    # Unique column; NULLs never collide, so quarantines are exempt
    return identity.display_name if identity.is_registered else None


def to_record(row: AttemptRow) -> AttemptRecord:
    """Convert an attempt row to the domain record."""
    return AttemptRecord(
        record_id=row.record_id,
        timestamp=_aware(row.timestamp),
        outcome=AttemptOutcome(row.outcome),
        descriptor_snapshot=row.descriptor_snapshot,
    )


def to_identity(row: IdentityRow) -> Identity:
    """Convert an identity row (with attempts loaded) to the domain entity."""
    return Identity(
        id=row.id,
        role=Role(row.role),
        display_name=row.display_name,
        contact=row.contact,
        avatar_ref=row.avatar_ref,
        descriptor=row.descriptor,
        attempt_log=[to_record(attempt) for attempt in row.attempts],
        created_at=_aware(row.created_at),
        last_seen_at=_aware(row.last_seen_at),
    )


class IdentityRepository:
    """Repository for identity rows."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    def _select(self):
        return (
            select(IdentityRow)
            .options(selectinload(IdentityRow.attempts))
            .execution_options(populate_existing=True)
        )

    async def list_by_role(self, role: Role) -> List[IdentityRow]:
        """Get identities of one role in insertion order.

        Args:
            role: Role to filter on

        Returns:
            List[IdentityRow]: Found identity rows
        """
        stmt = self._select().where(IdentityRow.role == role.value).order_by(IdentityRow.seq)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_contact(self, contact: str) -> Optional[IdentityRow]:
        """Get identity by contact handle.

        Args:
            contact: Normalised contact handle

        Returns:
            Optional[IdentityRow]: Found row or None
        """
        stmt = self._select().where(IdentityRow.contact == contact)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, identity_id: str) -> Optional[IdentityRow]:
        """Get identity by id.

        Args:
            identity_id: Identity identifier

        Returns:
            Optional[IdentityRow]: Found row or None
        """
        stmt = self._select().where(IdentityRow.id == identity_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, identity: Identity) -> IdentityRow:
        """Create an identity row and attach its attempt records.

        Records already present (moved from a deleted quarantine) are
        re-attached rather than inserted again.

        Args:
            identity: Domain identity to persist

        Returns:
            IdentityRow: Created row
        """
        row = IdentityRow(
            id=identity.id,
            role=identity.role.value,
            display_name=identity.display_name,
            contact=identity.contact,
            registered_name=_registered_name(identity),
            avatar_ref=identity.avatar_ref,
            descriptor=identity.descriptor.tolist(),
            created_at=identity.created_at,
            last_seen_at=identity.last_seen_at,
        )
        self._session.add(row)
        await self._session.flush()
        await self.attach_records(identity.id, identity.attempt_log)
        return row

    async def attach_records(self, identity_id: str, records: List[AttemptRecord]) -> None:
        """Attach attempt records to an identity, inserting the ones not yet stored.

        Args:
            identity_id: Owning identity id
            records: Records in chronological order
        """
        if not records:
            return
        stmt = select(AttemptRow.record_id).where(
            AttemptRow.record_id.in_([r.record_id for r in records])
        )
        existing = set((await self._session.execute(stmt)).scalars().all())

        if existing:
            await self._session.execute(
                update(AttemptRow)
                .where(AttemptRow.record_id.in_(existing))
                .values(identity_id=identity_id)
            )
        for record in records:
            if record.record_id in existing:
                continue
            self._session.add(
                AttemptRow(
                    record_id=record.record_id,
                    identity_id=identity_id,
                    timestamp=record.timestamp,
                    outcome=record.outcome.value,
                    descriptor_snapshot=record.descriptor_snapshot.tolist(),
                )
            )
        await self._session.flush()

    async def update_fields(self, identity: Identity) -> bool:
        """Update the scalar fields of an identity.

        Args:
            identity: Domain identity carrying the new values

        Returns:
            bool: False if the identity does not exist
        """
        stmt = (
            update(IdentityRow)
            .where(IdentityRow.id == identity.id)
            .values(
                role=identity.role.value,
                display_name=identity.display_name,
                contact=identity.contact,
                registered_name=_registered_name(identity),
                avatar_ref=identity.avatar_ref,
                descriptor=identity.descriptor.tolist(),
                last_seen_at=identity.last_seen_at,
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def touch(self, identity_id: str, seen_at: datetime) -> bool:
        """Set last_seen_at on an identity.

        Returns:
            bool: False if the identity does not exist
        """
        stmt = (
            update(IdentityRow)
            .where(IdentityRow.id == identity_id)
            .values(last_seen_at=seen_at)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete(self, identity_id: str) -> bool:
        """Delete an identity, detaching its attempt records.

        Returns:
            bool: False if no row was deleted (absent or removed concurrently)
        """
        await self._session.execute(
            update(AttemptRow)
            .where(AttemptRow.identity_id == identity_id)
            .values(identity_id=None)
        )
        result = await self._session.execute(
            delete(IdentityRow).where(IdentityRow.id == identity_id)
        )
        return result.rowcount > 0
