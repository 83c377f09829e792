"""
Dependency Injection per FastAPI
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Fornisce ai router il client del servizio remoto, uno per richiesta.
"""

from typing import AsyncGenerator

from invoice_engine.clients.hosted_service import HostedServiceClient


async def get_hosted_client() -> AsyncGenerator[HostedServiceClient, None]:
    """
    Dependency per il client del servizio remoto.

    Yields:
        HostedServiceClient: client chiuso automaticamente a fine richiesta
    """
    async with HostedServiceClient() as client:
        yield client
