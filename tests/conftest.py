"""Shared fixtures for the face identity tests."""
import pytest

from faceid.infrastructure.database.identity_store import SqlIdentityStore
from faceid.infrastructure.memory.identity_store import InMemoryIdentityStore
from faceid.services.credentials import JwtCredentialIssuer
from faceid.services.enrollment import EnrollmentService
from faceid.services.matching import EuclideanMatcher
from tests.fakes import TEST_SECRET, FakeExtractor, FlakyStore, TickingClock


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture(params=["memory", "sql"])
async def identity_store(request, tmp_path):
    """Provide each store implementation in turn."""
    if request.param == "memory":
        yield InMemoryIdentityStore()
        return
    store = SqlIdentityStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'identities.db'}")
    await store.create_schema()
    yield store
    await store.close()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def issuer() -> JwtCredentialIssuer:
    return JwtCredentialIssuer(secret=TEST_SECRET)


@pytest.fixture
def matcher() -> EuclideanMatcher:
    return EuclideanMatcher(threshold=0.5)


def build_service(extractor, store, matcher, issuer, clock) -> EnrollmentService:
    return EnrollmentService(
        extractor=extractor,
        store=store,
        matcher=matcher,
        issuer=issuer,
        extractor_timeout=1.0,
        registration_threshold=0.5,
        clock=clock,
    )


@pytest.fixture
def service(extractor, store, matcher, issuer, clock) -> EnrollmentService:
    """Enrollment service over an in-memory store and a programmable extractor."""
    return build_service(extractor, store, matcher, issuer, clock)


@pytest.fixture
def backed_service(extractor, identity_store, matcher, issuer, clock) -> EnrollmentService:
    """Enrollment service over each real store implementation."""
    return build_service(extractor, identity_store, matcher, issuer, clock)
