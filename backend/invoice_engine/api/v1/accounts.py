"""
Router FastAPI per i Conti di Ricavo
Progetto: Logistics Back-Office (Fatturazione Consolidata)
"""

from fastapi import APIRouter, Depends, status

from invoice_engine.clients.hosted_service import HostedServiceClient
from invoice_engine.core.deps import get_hosted_client
from invoice_engine.schemas.billing import Account
from invoice_engine.services.account_service import list_revenue_accounts

# Router con prefix e tag
router = APIRouter(
    prefix="/accounts",
    tags=["Piano dei Conti"],
)


@router.get(
    "/revenue",
    name="conti_ricavo",
    summary="Conti di ricavo",
    description="Conti Income selezionabili per la scrittura contabile, ordinati per codice.",
    response_model=list[Account],
    status_code=status.HTTP_200_OK,
)
async def get_revenue_accounts(
    client: HostedServiceClient = Depends(get_hosted_client),
) -> list[Account]:
    """Il primo conto della lista è quello proposto di default."""
    return await list_revenue_accounts(client)
