import logging

from core.config import Settings
from core.logging_config import CorrelationIdFilter, get_logger
from core.middleware import correlation_id_ctx
from services.factory import build_storage
from services.sql_storage import DatabaseStorage
from services.storage import MemoryStorage


def test_defaults_to_memory_storage(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("CORS_ORIGINS", raising=False)
    settings = Settings()
    assert settings.storage_backend == "memory"
    assert settings.cors_origins == ["*"]
    assert isinstance(build_storage(settings), MemoryStorage)


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("SQLALCHEMY_ECHO", "true")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:5173, https://ubs.example.org")
    settings = Settings()
    assert settings.storage_backend == "database"
    assert settings.sqlalchemy_echo is True
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ["http://localhost:5173", "https://ubs.example.org"]


async def test_database_url_selects_relational_storage():
    storage = build_storage(Settings(database_url="sqlite+aiosqlite:///:memory:"))
    assert isinstance(storage, DatabaseStorage)
    await storage.close()


def test_correlation_id_filter():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    CorrelationIdFilter().filter(record)
    assert record.correlation_id == "-"

    token = correlation_id_ctx.set("req-42")
    try:
        CorrelationIdFilter().filter(record)
    finally:
        correlation_id_ctx.reset(token)
    assert record.correlation_id == "req-42"


def test_logger_names():
    assert get_logger().name == "ubs-manager"
    assert get_logger("storage").name == "ubs-manager.storage"
