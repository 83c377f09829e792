import asyncio

from invoice_engine.core.database import engine
from invoice_engine.models import Base


async def reset():
    print("Connessione al database, eliminazione journal dei tentativi...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        print("Tabelle eliminate. Creazione nuove tabelle...")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Database resettato con successo!")

if __name__ == "__main__":
    asyncio.run(reset())
