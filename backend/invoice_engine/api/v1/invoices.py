"""
Router FastAPI per la Fatturazione Consolidata
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Definisce gli endpoint per anteprima, emissione, journal dei tentativi,
saldo e ristampa delle fatture.
"""

import logging

from fastapi import APIRouter, Depends, Path, status
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_engine.clients.hosted_service import HostedServiceClient
from invoice_engine.core.database import get_db
from invoice_engine.core.deps import get_hosted_client
from invoice_engine.schemas.invoice import (
    BalanceEvaluation,
    BalanceRequest,
    DraftInvoiceRequest,
    Invoice,
    InvoiceCreationResult,
    InvoiceRenderRequest,
    InvoiceSubmitRequest,
)
from invoice_engine.schemas.submission import SubmissionAttemptRead
from invoice_engine.services.balance_service import evaluate_balance
from invoice_engine.services.document_service import InvoiceDocumentRenderer
from invoice_engine.services.draft_service import DraftInvoiceCalculator
from invoice_engine.services.override_service import DraftSession
from invoice_engine.services.submission_service import InvoiceSubmitter

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanze dei service
draft_calculator = DraftInvoiceCalculator()
document_renderer = InvoiceDocumentRenderer()

# Router con prefix e tag
router = APIRouter(
    prefix="/invoices",
    tags=["Fatturazione"],
)


# -------------------------------------------------------------------
# Endpoints per Bozza ed Emissione
# -------------------------------------------------------------------

@router.post(
    "/draft",
    name="fattura_anteprima",
    summary="Anteprima fattura",
    description="Calcola la bozza per le voci selezionate senza chiamate di rete.",
    response_model=Invoice,
    status_code=status.HTTP_200_OK,
)
async def preview_invoice(data: DraftInvoiceRequest) -> Invoice:
    """
    Stesso calcolo usato per l'emissione: anteprima e fattura
    non possono divergere.
    """
    session = DraftSession.from_selection(data.charges, data.selected_ids, data.overrides)
    draft_input = session.to_draft_input(
        currency=data.currency,
        exchange_rate=data.exchange_rate,
        header=data.header,
    )
    return draft_calculator.compute(draft_input)


@router.post(
    "",
    name="fattura_emissione",
    summary="Emissione fattura",
    description="Promuove le voci virtuali e crea la fattura nel servizio remoto.",
    response_model=InvoiceCreationResult,
    status_code=status.HTTP_201_CREATED,
)
async def submit_invoice(
    data: InvoiceSubmitRequest,
    db: AsyncSession = Depends(get_db),
    client: HostedServiceClient = Depends(get_hosted_client),
) -> InvoiceCreationResult:
    """
    L'esito distingue fattura registrata in contabilità
    (posted_with_ledger_entry) da fattura senza scrittura
    (created_without_ledger_entry).

    In caso di errore la risposta contiene attempt_id: ripassarlo
    per riprendere il tentativo senza ripromuovere le voci.
    """
    submitter = InvoiceSubmitter(client)
    return await submitter.submit(db, data)


@router.get(
    "/attempts/{attempt_id}",
    name="tentativo_emissione",
    summary="Stato tentativo di emissione",
    description="Fase raggiunta da un tentativo e mappa delle voci promosse.",
    response_model=SubmissionAttemptRead,
    status_code=status.HTTP_200_OK,
)
async def get_submission_attempt(
    attempt_id: str = Path(..., description="UUID del tentativo"),
    db: AsyncSession = Depends(get_db),
) -> SubmissionAttemptRead:
    attempt = await InvoiceSubmitter.get_attempt(db, attempt_id)
    return SubmissionAttemptRead.model_validate(attempt)


# -------------------------------------------------------------------
# Endpoints per Saldo e Ristampa
# -------------------------------------------------------------------

@router.post(
    "/balance",
    name="fattura_saldo",
    summary="Saldo fattura",
    description="Saldo residuo e stato calcolati dagli incassi ricevuti.",
    response_model=BalanceEvaluation,
    status_code=status.HTTP_200_OK,
)
async def get_invoice_balance(data: BalanceRequest) -> BalanceEvaluation:
    return evaluate_balance(data.invoice, data.collections, today=data.as_of)


@router.post(
    "/render",
    name="fattura_documento",
    summary="Documento fattura",
    description="HTML stampabile; la ristampa cambia solo note e metadata.",
    response_class=HTMLResponse,
    status_code=status.HTTP_200_OK,
)
async def render_invoice(data: InvoiceRenderRequest) -> HTMLResponse:
    html = document_renderer.render(data.invoice, notes=data.notes, metadata=data.metadata)
    return HTMLResponse(content=html)
