"""
Configurazione Database - SQLAlchemy 2.0 Async
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Definisce engine, session factory e dependency injection per FastAPI.
Il database locale conserva solo il journal dei tentativi di emissione;
voci di addebito e fatture vivono nel servizio remoto.
"""

import logging
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from invoice_engine.core.config import settings

# Logger per questo modulo
logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# Engine Async SQLAlchemy 2.0
# ------------------------------------------------------------
_engine_options: dict[str, Any] = {
    "echo": settings.debug,  # Log query in modalità debug
    "pool_pre_ping": True,   # Verifica connessione prima di usarla
}
# SQLite (test e sviluppo locale) non accetta i parametri del pool
if not settings.database_url.startswith("sqlite"):
    _engine_options["pool_size"] = settings.db_pool_size
    _engine_options["max_overflow"] = settings.db_max_overflow

engine: AsyncEngine = create_async_engine(settings.database_url, **_engine_options)


# ------------------------------------------------------------
# Session Factory
# ------------------------------------------------------------
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injection per FastAPI.

    Crea una sessione database per ogni richiesta e la chiude
    automaticamente al termine.

    Yields:
        AsyncSession: Sessione database async
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    Inizializza la connessione al database e crea le tabelle mancanti.
    """
    from invoice_engine.models import Base

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Connessione al database stabilita con successo")
    except Exception as e:
        logger.error("Errore connessione database: %s", e)
        raise


async def close_db() -> None:
    """
    Chiude le connessioni al database.

    Da chiamare durante lo shutdown dell'applicazione.
    """
    await engine.dispose()
    logger.info("Connessioni database chiuse")
