import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from app.main import create_app
from core.config import Settings
from models.clinical import DATE_PATHS, empty_payload, set_leaf
from services.sql_storage import DatabaseStorage
from services.storage import MemoryStorage

# In-memory SQLite; StaticPool keeps the single connection (and its tables)
# alive for the whole test.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN = {"X-User-Role": "admin"}
DOCTOR = {"X-User-Role": "doctor"}
NURSE = {"X-User-Role": "nurse"}
STAFF = {"X-User-Role": "staff"}


def make_storage(kind: str):
    if kind == "memory":
        return MemoryStorage()
    return DatabaseStorage.from_url(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@pytest.fixture(params=["memory", "sqlite"])
async def storage(request):
    store = make_storage(request.param)
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def settings():
    return Settings(database_url=None, log_level="WARNING", cors_origins=["*"])


@pytest.fixture
def app(settings, storage):
    return create_app(settings=settings, storage=storage)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def payload():
    """Factory for a complete, valid clinical document."""

    def build(nome: str = "Maria Souza", **section_updates):
        doc = empty_payload()
        for path in DATE_PATHS:
            set_leaf(doc, path, "2024-03-01")
        doc["monitoramento"].update(
            matricula="M-001",
            nome=nome,
            data_nascimento="2024-02-20",
            encaminhado_por="Maternidade",
        )
        doc["historia_materna"].update(nome_mae="Ana Souza", idade=24, numero_consultas=6)
        for section, values in section_updates.items():
            doc[section].update(values)
        return doc

    return build


@pytest.fixture
def record_body(payload):
    """Factory for a POST /api/medical-records body (camelCase)."""

    def build(nome: str = "Maria Souza", **fields):
        body = {
            "patientName": nome,
            "patientBirthDate": "2024-02-20T00:00:00",
            "status": "active",
            "data": payload(nome=nome),
        }
        body.update(fields)
        return body

    return build
