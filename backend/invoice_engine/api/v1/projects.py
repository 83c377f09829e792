"""
Router FastAPI per le Voci di Addebito di Progetto
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Definisce gli endpoint per leggere le voci persistite, unirle
alla quotazione e riepilogare le fatture del progetto.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from invoice_engine.clients.hosted_service import HostedServiceClient
from invoice_engine.core.deps import get_hosted_client
from invoice_engine.schemas.billing import BillingMergeRequest, ChargeRecord
from invoice_engine.schemas.invoice import ProjectInvoiceSummary
from invoice_engine.services.balance_service import get_project_summary
from invoice_engine.services.merge_service import merge_billing_items

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/projects",
    tags=["Voci di Addebito"],
)


# -------------------------------------------------------------------
# Endpoints per Voci di Addebito
# -------------------------------------------------------------------

@router.get(
    "/{project_id}/billing-items",
    name="voci_progetto",
    summary="Voci di addebito del progetto",
    description="Voci persistite così come restituite dal servizio remoto.",
    response_model=list[ChargeRecord],
    status_code=status.HTTP_200_OK,
)
async def get_billing_items(
    project_id: str = Path(..., description="Numero del progetto"),
    client: HostedServiceClient = Depends(get_hosted_client),
) -> list[ChargeRecord]:
    return await client.list_billing_items(project_id)


@router.post(
    "/{project_id}/billing-items/merge",
    name="voci_progetto_unione",
    summary="Unione voci e quotazione",
    description="Voci persistite più voci virtuali derivate dalla quotazione.",
    response_model=list[ChargeRecord],
    status_code=status.HTTP_200_OK,
)
async def merge_project_billing_items(
    data: BillingMergeRequest,
    project_id: str = Path(..., description="Numero del progetto"),
    client: HostedServiceClient = Depends(get_hosted_client),
) -> list[ChargeRecord]:
    """
    Da rieseguire dopo ogni tentativo di emissione fallito:
    le voci già promosse compaiono come reali.
    """
    items = await client.list_billing_items(project_id)
    merged = merge_billing_items(items, data.quotation)
    logger.debug(f"Progetto {project_id}: {len(items)} voci persistite, {len(merged)} dopo l'unione")
    return merged


# -------------------------------------------------------------------
# Endpoints per Riepilogo Fatture
# -------------------------------------------------------------------

@router.get(
    "/{project_id}/invoices/summary",
    name="riepilogo_fatture_progetto",
    summary="Riepilogo fatture del progetto",
    description="Totale fatturato e residuo, con saldo e stato di ogni fattura.",
    response_model=ProjectInvoiceSummary,
    status_code=status.HTTP_200_OK,
)
async def get_invoice_summary(
    project_id: str = Path(..., description="Numero del progetto"),
    as_of: Optional[date] = Query(
        None,
        description="Data di riferimento per le scadenze (default: oggi)"
    ),
    client: HostedServiceClient = Depends(get_hosted_client),
) -> ProjectInvoiceSummary:
    return await get_project_summary(client, project_id, today=as_of)
