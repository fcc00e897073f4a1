"""Contract tests shared by every identity store implementation."""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from faceid.core.exceptions import (
    DuplicateContactError,
    DuplicateDisplayNameError,
    IdentityConflictError,
    StoreUnavailableError,
)
from faceid.domain.entities.identity import AttemptOutcome, AttemptRecord, Identity, Role
from faceid.infrastructure.database.identity_store import SqlIdentityStore
from faceid.infrastructure.memory.identity_store import InMemoryIdentityStore
from tests.fakes import unit

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_registered(name: str, index: int, at: datetime = T0) -> Identity:
    descriptor = unit(index)
    return Identity(
        role=Role.REGISTERED,
        display_name=name,
        contact=f"{name.lower()}@example.com",
        avatar_ref=f"https://avatars.example/{name}",
        descriptor=descriptor,
        attempt_log=[
            AttemptRecord(timestamp=at, outcome=AttemptOutcome.MATCHED, descriptor_snapshot=descriptor)
        ],
        created_at=at,
        last_seen_at=at,
    )


class TestIdentityStoreContract:
    """Behaviour every IdentityStore must provide."""

    async def test_insert_and_read_back(self, identity_store):
        ann = make_registered("Ann", 0)
        await identity_store.insert(ann)

        stored = await identity_store.get_by_id(ann.id)
        assert stored.id == ann.id
        assert stored.role == Role.REGISTERED
        assert stored.display_name == "Ann"
        assert stored.contact == "ann@example.com"
        assert stored.avatar_ref == ann.avatar_ref
        assert stored.created_at == T0
        assert (stored.descriptor == ann.descriptor).all()
        assert [r.record_id for r in stored.attempt_log] == [r.record_id for r in ann.attempt_log]
        assert (stored.attempt_log[0].descriptor_snapshot == ann.descriptor).all()

    async def test_find_by_role_keeps_insertion_order(self, identity_store):
        names = ["Cid", "Ann", "Bob"]
        for i, name in enumerate(names):
            await identity_store.insert(make_registered(name, i))
        await identity_store.insert(Identity.quarantine(unit(5), seen_at=T0))

        registered = await identity_store.find_by_role(Role.REGISTERED)
        quarantined = await identity_store.find_by_role(Role.QUARANTINED)

        assert [i.display_name for i in registered] == names
        assert len(quarantined) == 1

    async def test_find_by_contact(self, identity_store):
        ann = make_registered("Ann", 0)
        await identity_store.insert(ann)

        assert (await identity_store.find_by_contact("ann@example.com")).id == ann.id
        assert await identity_store.find_by_contact("nobody@example.com") is None

    async def test_duplicate_contact_rejected(self, identity_store):
        await identity_store.insert(make_registered("Ann", 0))
        clone = make_registered("Ann", 1).model_copy(update={"display_name": "Annie"})

        with pytest.raises(DuplicateContactError):
            await identity_store.insert(clone)
        assert len(await identity_store.find_by_role(Role.REGISTERED)) == 1

    async def test_duplicate_registered_name_rejected(self, identity_store):
        await identity_store.insert(make_registered("Ann", 0))
        namesake = make_registered("Ann", 1).model_copy(update={"contact": "ann.two@example.com"})

        with pytest.raises(DuplicateDisplayNameError):
            await identity_store.insert(namesake)
        assert len(await identity_store.find_by_role(Role.REGISTERED)) == 1

    async def test_quarantines_do_not_reserve_names(self, identity_store):
        quarantine = Identity.quarantine(unit(4), seen_at=T0)
        await identity_store.insert(quarantine)
        lookalike = make_registered("Ann", 0).model_copy(update={"display_name": quarantine.display_name})

        await identity_store.insert(lookalike)

        assert (await identity_store.get_by_id(lookalike.id)).display_name == quarantine.display_name

    async def test_rename_onto_taken_name_rejected(self, identity_store):
        await identity_store.insert(make_registered("Ann", 0))
        bob = make_registered("Bob", 1)
        await identity_store.insert(bob)

        with pytest.raises(IdentityConflictError):
            await identity_store.update(bob.model_copy(update={"display_name": "Ann"}))
        assert (await identity_store.get_by_id(bob.id)).display_name == "Bob"

    async def test_delete_returns_identity_once(self, identity_store):
        quarantine = Identity.quarantine(unit(2), seen_at=T0)
        await identity_store.insert(quarantine)

        removed = await identity_store.delete_by_id(quarantine.id)
        assert removed.id == quarantine.id
        assert len(removed.attempt_log) == 1

        assert await identity_store.delete_by_id(quarantine.id) is None
        assert await identity_store.delete_by_id("never-existed") is None
        assert await identity_store.get_by_id(quarantine.id) is None

    async def test_append_attempt_touches_last_seen(self, identity_store):
        ann = make_registered("Ann", 0)
        await identity_store.insert(ann)
        later = T0 + timedelta(minutes=5)
        record = AttemptRecord(timestamp=later, outcome=AttemptOutcome.MATCHED, descriptor_snapshot=unit(0))

        updated = await identity_store.append_attempt(ann.id, record, seen_at=later)

        assert updated.last_seen_at == later
        assert [r.record_id for r in updated.attempt_log] == [ann.attempt_log[0].record_id, record.record_id]
        assert (await identity_store.get_by_id(ann.id)).last_seen_at == later

    async def test_append_attempt_without_touch(self, identity_store):
        ann = make_registered("Ann", 0)
        await identity_store.insert(ann)
        record = AttemptRecord(
            timestamp=T0 + timedelta(seconds=1), outcome=AttemptOutcome.MATCHED, descriptor_snapshot=unit(0)
        )

        updated = await identity_store.append_attempt(ann.id, record)
        assert updated.last_seen_at == T0
        assert len(updated.attempt_log) == 2

    async def test_append_attempt_to_missing_identity(self, identity_store):
        record = AttemptRecord(timestamp=T0, outcome=AttemptOutcome.MATCHED, descriptor_snapshot=unit(0))
        assert await identity_store.append_attempt("missing", record, seen_at=T0) is None

    async def test_update_replaces_fields_and_appends_records(self, identity_store):
        ann = make_registered("Ann", 0)
        await identity_store.insert(ann)
        extra = AttemptRecord(
            timestamp=T0 + timedelta(seconds=1), outcome=AttemptOutcome.MATCHED, descriptor_snapshot=unit(0)
        )

        await identity_store.update(
            ann.model_copy(update={"display_name": "Anne", "attempt_log": ann.attempt_log + [extra]})
        )

        stored = await identity_store.get_by_id(ann.id)
        assert stored.display_name == "Anne"
        assert [r.record_id for r in stored.attempt_log] == [ann.attempt_log[0].record_id, extra.record_id]

    async def test_records_move_with_promotion(self, identity_store):
        """Records of a deleted quarantine re-attach to the identity that inherits them."""
        quarantine = Identity.quarantine(unit(3), seen_at=T0)
        await identity_store.insert(quarantine)
        claimed = await identity_store.delete_by_id(quarantine.id)

        promoted = make_registered("Ann", 3, at=T0 + timedelta(minutes=1))
        promoted = promoted.model_copy(update={"attempt_log": claimed.attempt_log + promoted.attempt_log})
        await identity_store.insert(promoted)

        stored = await identity_store.get_by_id(promoted.id)
        assert [r.record_id for r in stored.attempt_log] == [r.record_id for r in promoted.attempt_log]
        assert stored.attempt_log[0].outcome == AttemptOutcome.QUARANTINED
        assert stored.attempt_log[0].timestamp == T0

    async def test_returned_identities_are_detached(self, identity_store):
        ann = make_registered("Ann", 0)
        await identity_store.insert(ann)

        copy = await identity_store.get_by_id(ann.id)
        copy.attempt_log.clear()
        copy.display_name = "Mallory"

        stored = await identity_store.get_by_id(ann.id)
        assert stored.display_name == "Ann"
        assert len(stored.attempt_log) == 1


class TestInMemoryIdentityStore:
    """Behaviour specific to the in-process store."""

    async def test_concurrent_deletes_have_one_winner(self):
        store = InMemoryIdentityStore()
        quarantine = Identity.quarantine(unit(2), seen_at=T0)
        await store.insert(quarantine)

        results = await asyncio.gather(*(store.delete_by_id(quarantine.id) for _ in range(5)))
        assert sum(r is not None for r in results) == 1

    async def test_reinserting_same_id_fails(self):
        store = InMemoryIdentityStore()
        quarantine = Identity.quarantine(unit(2), seen_at=T0)
        await store.insert(quarantine)

        with pytest.raises(ValueError):
            await store.insert(quarantine)

    async def test_update_of_missing_identity_is_ignored(self):
        store = InMemoryIdentityStore()
        await store.update(make_registered("Ann", 0))
        assert await store.find_by_role(Role.REGISTERED) == []


class TestSqlIdentityStore:
    """Behaviour specific to the SQLAlchemy store."""

    async def test_data_survives_a_new_engine(self, tmp_path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'identities.db'}"
        store = SqlIdentityStore.from_url(url)
        await store.create_schema()
        ann = make_registered("Ann", 0)
        await store.insert(ann)
        await store.close()

        reopened = SqlIdentityStore.from_url(url)
        await reopened.create_schema()
        stored = await reopened.find_by_contact("ann@example.com")
        await reopened.close()

        assert stored.id == ann.id
        assert stored.descriptor.flags.writeable is False

    async def test_missing_schema_reports_unavailable(self, tmp_path):
        store = SqlIdentityStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        with pytest.raises(StoreUnavailableError):
            await store.find_by_role(Role.REGISTERED)
        await store.close()
