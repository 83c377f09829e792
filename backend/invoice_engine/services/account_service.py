"""
Service per i Conti di Ricavo
Progetto: Logistics Back-Office (Fatturazione Consolidata)
"""

import logging

from invoice_engine.clients.hosted_service import HostedServiceClient
from invoice_engine.schemas.billing import Account

# Logger per questo modulo
logger = logging.getLogger(__name__)


def select_revenue_accounts(accounts: list[Account]) -> list[Account]:
    """Conti Income non cartella, ordinati per codice e poi per nome."""
    revenue = [a for a in accounts if a.is_revenue]
    return sorted(revenue, key=lambda a: (a.code or "", a.name))


async def list_revenue_accounts(client: HostedServiceClient) -> list[Account]:
    """
    Conti selezionabili come revenue_account_id.

    Il primo della lista è il conto proposto di default.
    """
    accounts = await client.list_accounts()
    revenue = select_revenue_accounts(accounts)
    logger.debug(f"{len(revenue)} conti di ricavo su {len(accounts)} conti totali")
    return revenue
