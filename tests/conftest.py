"""Shared test fixtures: async SQLite in-memory DB, fake media host and mailer, test client."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

# Import all models so metadata is populated
import salon_landing.models  # noqa: F401
from salon_landing.api.deps import get_object_store, get_orchestrator
from salon_landing.core.config import get_settings
from salon_landing.core.database import get_session
from salon_landing.core.documents import DocumentStore
from salon_landing.core.errors import ExternalServiceError, ObjectNotFoundError
from salon_landing.main import app
from salon_landing.models.intake import IntakeRequest, IntakeStatus, TenantProfile
from salon_landing.models.staging import AssetCategory, StagedAssetSet
from salon_landing.services.notifier import EmailMessage, Notifier
from salon_landing.services.object_store import ObjectStore
from salon_landing.services.provisioning import ProvisioningOrchestrator

ADMIN_TOKEN = "test-admin-token"
CDN = "https://res.cloudinary.com/demo/image/upload"
STAGING_KEY = "salon_1700000000000_42"


class FakeObjectStore(ObjectStore):
    """In-memory media host keyed by public id."""

    def __init__(self) -> None:
        self.objects: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.fail_rename = False
        self.fail_lookup = False
        self.fail_upload = False
        self.fail_delete = False

    @staticmethod
    def url_for(key: str) -> str:
        return f"{CDN}/v1700000000/{key}.jpg"

    def put(self, key: str) -> str:
        self.objects[key] = self.url_for(key)
        return self.objects[key]

    async def rename(self, from_key: str, to_key: str) -> str:
        self.calls.append(("rename", from_key, to_key))
        if self.fail_rename:
            raise ExternalServiceError("rename unavailable")
        if from_key not in self.objects:
            raise ObjectNotFoundError(from_key)
        del self.objects[from_key]
        return self.put(to_key)

    async def lookup(self, key: str) -> str | None:
        self.calls.append(("lookup", key))
        if self.fail_lookup:
            raise ExternalServiceError("lookup unavailable")
        return self.objects.get(key)

    async def upload_from_url(self, source_url: str, key: str) -> str:
        self.calls.append(("upload", source_url, key))
        if self.fail_upload:
            raise ExternalServiceError("upload unavailable")
        return self.put(key)

    async def delete_prefix(self, prefix: str) -> int:
        self.calls.append(("delete_prefix", prefix))
        if self.fail_delete:
            raise ExternalServiceError("delete unavailable")
        doomed = [k for k in self.objects if k.startswith(prefix)]
        for key in doomed:
            del self.objects[key]
        return len(doomed)


class FakeNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []
        self.fail = False

    async def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise ExternalServiceError("mailer down")
        self.sent.append(message)


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess


@pytest.fixture
def store(test_session_factory) -> DocumentStore:
    return DocumentStore(test_session_factory)


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def orchestrator(test_session_factory, store, object_store, notifier) -> ProvisioningOrchestrator:
    return ProvisioningOrchestrator(test_session_factory, store, object_store, notifier)


@pytest.fixture
def admin_headers(monkeypatch) -> dict[str, str]:
    monkeypatch.setattr(get_settings(), "admin_api_token", ADMIN_TOKEN)
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
async def client(test_session_factory, object_store, orchestrator) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session and collaborator overrides."""

    async def _override_session():
        async with test_session_factory() as sess:
            yield sess

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_object_store] = lambda: object_store
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_request(test_session_factory):
    """Factory for intake requests, paid by default."""

    async def _make(
        business_name: str = "Bella Spa",
        owner_name: str = "María García",
        email: str = "maria@bellaspa.com",
        status: IntakeStatus = IntakeStatus.PAYMENT_CONFIRMED,
        profile: TenantProfile | None = None,
        **fields,
    ) -> IntakeRequest:
        request = IntakeRequest(
            business_name=business_name,
            owner_name=owner_name,
            email=email,
            phone=fields.pop("phone", "+503 7000-0000"),
            status=status,
            profile=(profile or TenantProfile()).model_dump_json(),
            **fields,
        )
        async with test_session_factory() as sess:
            sess.add(request)
            await sess.commit()
            await sess.refresh(request)
        return request

    return _make


@pytest.fixture
def stage_assets(test_session_factory, object_store):
    """Upload fake objects under the staging prefix and index them."""

    async def _stage(staging_key: str = STAGING_KEY, **categories) -> StagedAssetSet:
        staged = StagedAssetSet(staging_key=staging_key)
        for name, files in categories.items():
            category = AssetCategory(name)
            for filename in [files] if isinstance(files, str) else files:
                url = object_store.put(f"staging/{staging_key}/{category}/{filename}")
                staged.append(category, url)
        async with test_session_factory() as sess:
            sess.add(staged)
            await sess.commit()
            await sess.refresh(staged)
        return staged

    return _stage
