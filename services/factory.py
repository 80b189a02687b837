from core.config import Settings
from core.logging_config import get_logger
from services.storage import MemoryStorage, Storage

logger = get_logger("storage")


def build_storage(settings: Settings) -> Storage:
    """Pick the backend once, at start-up."""
    if settings.storage_backend == "database":
        from services.sql_storage import DatabaseStorage

        logger.info("🗄️ Using relational storage")
        return DatabaseStorage.from_url(settings.database_url, echo=settings.sqlalchemy_echo)

    logger.info("🧠 DATABASE_URL not set, using in-memory storage")
    return MemoryStorage()
