from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    """Opciones del pool según el driver (SQLite no acepta pool_size)."""
    if url.startswith("sqlite"):
        return {"echo": settings.DEBUG}
    options = {
        "pool_pre_ping": True,
        "echo": settings.DEBUG,
    }
    if settings.ENVIRONMENT == "test":
        options["poolclass"] = NullPool
    else:
        options["pool_size"] = 10
        options["max_overflow"] = 20
    return options


# Async engine for application use
async_engine = create_async_engine(
    settings.async_database_url,
    **_engine_options(settings.async_database_url)
)

# Async session for application
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

Base = declarative_base()


async def create_tables() -> None:
    """Crea las tablas declaradas (solo desarrollo; en producción usar migraciones)."""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Async dependency for application endpoints
async def get_async_db():
    """Genera una sesión de base de datos asíncrona para endpoints."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database error: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()
