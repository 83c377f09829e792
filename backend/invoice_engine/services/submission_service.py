"""
Service per l'Emissione della Fattura Consolidata
Progetto: Logistics Back-Office (Fatturazione Consolidata)

L'emissione è un'operazione in due fasi verso il servizio remoto:
1. promozione delle voci virtuali selezionate (batch)
2. creazione della fattura, che marca le voci come billed e registra
   la scrittura contabile se è indicato un conto ricavi

Le due chiamate non condividono una transazione remota: ogni fase
raggiunta viene registrata nel journal locale (InvoiceSubmissionAttempt),
così un nuovo tentativo con lo stesso attempt_id riparte dalla
seconda fase senza ripromuovere le voci già persistite.
Nessun retry automatico.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from invoice_engine.clients.hosted_service import HostedServiceClient
from invoice_engine.core.config import settings
from invoice_engine.core.exceptions import (
    AppException,
    BusinessValidationError,
    ConflictError,
    InconsistentMapping,
    NotFoundError,
    PromotionFailure,
    ServiceUnavailableError,
    SubmissionFailure,
)
from invoice_engine.models import AttemptState, InvoiceSubmissionAttempt
from invoice_engine.schemas.invoice import (
    CreationOutcome,
    DraftInvoiceInput,
    Invoice,
    InvoiceCreationResult,
    InvoiceStatus,
    InvoiceSubmitRequest,
)
from invoice_engine.schemas.remote import InvoiceCreationPayload, MalformedResponse
from invoice_engine.services.draft_service import compute_draft, remap_draft_input
from invoice_engine.services.override_service import DraftSession
from invoice_engine.services.promotion_service import VirtualItemPromoter

# Logger per questo modulo
logger = logging.getLogger(__name__)


class InvoiceSubmitter:
    """
    Service per l'emissione delle fatture consolidate.

    Implementa:
    - Validazione della selezione prima di qualsiasi chiamata di rete
    - Journal del tentativo (pending → promoted → submitted | failed)
    - Promozione delle voci virtuali con riuso della mappa registrata
    - Ricalcolo finale della bozza con gli id reali
    - Esiti distinti con e senza scrittura contabile
    """

    def __init__(
        self,
        client: HostedServiceClient,
        default_due_days: Optional[int] = None,
    ) -> None:
        self.client = client
        self.promoter = VirtualItemPromoter(client)
        self.default_due_days = (
            default_due_days if default_due_days is not None else settings.default_due_days
        )

    async def submit(
        self,
        db: AsyncSession,
        data: InvoiceSubmitRequest,
    ) -> InvoiceCreationResult:
        """
        Emette la fattura per le voci selezionate.

        Steps:
        1. Verifica selezione non vuota, voci unbilled e tasso di cambio
        2. Registra un nuovo tentativo o riprende quello indicato
        3. Promuove le voci virtuali (fase 1) e registra la mappa
        4. Ricalcola la bozza con gli id reali
        5. Crea la fattura (fase 2) e registra l'esito

        Args:
            db: Sessione database del journal
            data: Selezione, personalizzazioni, valuta e intestazione

        Returns:
            InvoiceCreationResult: fattura emessa ed esito contabile

        Raises:
            BusinessValidationError: selezione vuota, voce non fatturabile, tasso mancante
            NotFoundError: voce o tentativo sconosciuto
            ConflictError: tentativo già completato o di altro progetto
            PromotionFailure: fase 1 fallita
            InconsistentMapping: voce promossa senza corrispondenza
            SubmissionFailure: fase 2 fallita
        """
        # Step 1: Validazione locale, prima di ogni chiamata di rete
        if not data.selected_ids:
            raise BusinessValidationError(
                "Selezionare almeno una voce di addebito",
                error_code="NO_CHARGES_SELECTED",
            )

        session = DraftSession.from_selection(data.charges, data.selected_ids, data.overrides)
        draft_input = session.to_draft_input(
            currency=data.currency,
            exchange_rate=data.exchange_rate,
            header=data.header,
        )
        compute_draft(draft_input, default_due_days=self.default_due_days)

        # Step 2: Journal del tentativo
        attempt = await self._record_attempt(db, data, session.selected_ids)

        # Step 3: Promozione (fase 1)
        try:
            promotion = await self.promoter.promote(
                project_id=data.project_id,
                charges=data.charges,
                selected_ids=session.selected_ids,
                known_id_map=attempt.id_map,
            )
        except InconsistentMapping as e:
            partial_map = (e.extra or {}).get("id_map") or {}
            attempt.id_map = {**attempt.id_map, **partial_map}
            await self._fail(db, attempt, e)
            raise
        except PromotionFailure as e:
            await self._fail(db, attempt, e)
            raise

        attempt.id_map = dict(promotion.id_map)
        attempt.mark(AttemptState.PROMOTED)
        await db.commit()
        logger.info(
            f"Tentativo {attempt.id}: fase di promozione completata "
            f"({promotion.promoted_count} voci promosse)"
        )

        # Step 4: Ricalcolo finale con gli id reali
        final_draft = compute_draft(
            remap_draft_input(draft_input, promotion.id_map),
            default_due_days=self.default_due_days,
        )
        payload = self._build_payload(data, draft_input, final_draft, promotion.billing_item_ids)

        # Step 5: Creazione fattura (fase 2)
        try:
            response = await self.client.create_invoice(payload)
        except ServiceUnavailableError as e:
            failure = SubmissionFailure(f"Impossibile creare la fattura: {e.detail}")
            await self._fail(db, attempt, failure)
            raise failure from e
        except MalformedResponse as e:
            failure = SubmissionFailure(f"Risposta di creazione non valida: {e}")
            await self._fail(db, attempt, failure)
            raise failure from e

        if not response.success:
            failure = SubmissionFailure(response.error or "Impossibile creare la fattura")
            await self._fail(db, attempt, failure)
            raise failure

        attempt.invoice_id = response.invoice_id
        attempt.invoice_number = response.invoice_number
        attempt.journal_entry_id = response.journal_entry_id
        attempt.mark(AttemptState.SUBMITTED)
        await db.commit()

        invoice = final_draft.model_copy(update={
            "id": response.invoice_id or response.invoice_number,
            "invoice_number": response.invoice_number,
            "status": InvoiceStatus.POSTED,
            "journal_entry_id": response.journal_entry_id,
        })
        return self._build_result(attempt, invoice, data.revenue_account_id, payload.billing_item_ids)

    # ------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------
    @staticmethod
    async def get_attempt(db: AsyncSession, attempt_id: str) -> InvoiceSubmissionAttempt:
        """
        Recupera un tentativo di emissione.

        Raises:
            NotFoundError: id non valido o tentativo inesistente
        """
        try:
            key = uuid.UUID(str(attempt_id))
        except ValueError:
            raise NotFoundError(f"Tentativo di emissione {attempt_id} non trovato")

        attempt = await db.get(InvoiceSubmissionAttempt, key)
        if attempt is None:
            raise NotFoundError(f"Tentativo di emissione {attempt_id} non trovato")
        return attempt

    async def _record_attempt(
        self,
        db: AsyncSession,
        data: InvoiceSubmitRequest,
        selected_ids: list[str],
    ) -> InvoiceSubmissionAttempt:
        if data.attempt_id:
            attempt = await self.get_attempt(db, data.attempt_id)
            if attempt.is_submitted:
                raise ConflictError(
                    f"Il tentativo {attempt.id} ha già emesso la fattura {attempt.invoice_number}",
                    error_code="ATTEMPT_ALREADY_SUBMITTED",
                    extra={"invoice_number": attempt.invoice_number},
                )
            if attempt.project_id != data.project_id:
                raise ConflictError(
                    f"Il tentativo {attempt.id} appartiene a un altro progetto",
                    error_code="ATTEMPT_PROJECT_MISMATCH",
                )
            attempt.selected_ids = list(selected_ids)
            logger.info(
                f"Ripresa del tentativo {attempt.id} (stato {attempt.state}, "
                f"{len(attempt.id_map)} voci già promosse)"
            )
        else:
            attempt = InvoiceSubmissionAttempt(
                project_id=data.project_id,
                state=AttemptState.PENDING.value,
                selected_ids=list(selected_ids),
                id_map={},
            )
            db.add(attempt)

        await db.commit()
        await db.refresh(attempt)
        logger.info(f"Tentativo di emissione {attempt.id} registrato per il progetto {data.project_id}")
        return attempt

    async def _fail(
        self,
        db: AsyncSession,
        attempt: InvoiceSubmissionAttempt,
        error: AppException,
    ) -> None:
        """Registra il fallimento e allega attempt_id all'errore per il retry."""
        attempt.mark(AttemptState.FAILED, error_code=error.error_code, error_detail=error.detail)
        await db.commit()
        error.extra = {**(error.extra or {}), "attempt_id": str(attempt.id)}
        logger.error(f"Tentativo {attempt.id} fallito [{error.error_code}]: {error.detail}")

    # ------------------------------------------------------------
    # Payload ed esito
    # ------------------------------------------------------------
    @staticmethod
    def _build_payload(
        data: InvoiceSubmitRequest,
        draft_input: DraftInvoiceInput,
        draft: Invoice,
        billing_item_ids: list[str],
    ) -> InvoiceCreationPayload:
        """Payload di creazione dalla bozza ricalcolata (mai da un render precedente)."""
        return InvoiceCreationPayload(
            project_number=draft.project_number or data.project_id,
            customer_id=draft.customer_id,
            customer_name=draft.customer_name,
            customer_address=draft.customer_address,
            billing_item_ids=billing_item_ids,
            invoice_date=draft.invoice_date,
            due_date=draft.due_date,
            notes=draft.notes,
            user_name=draft_input.header.metadata.signatories.prepared_by.name,
            currency=draft.currency,
            exchange_rate=draft.exchange_rate,
            original_currency=draft.original_currency,
            line_items=list(draft.line_items),
            subtotal=draft.subtotal,
            tax_amount=draft.tax_amount,
            total_amount=draft.total_amount,
            revenue_account_id=data.revenue_account_id,
            metadata=draft.metadata,
        )

    @staticmethod
    def _build_result(
        attempt: InvoiceSubmissionAttempt,
        invoice: Invoice,
        revenue_account_id: Optional[str],
        billing_item_ids: list[str],
    ) -> InvoiceCreationResult:
        if invoice.journal_entry_id:
            outcome = CreationOutcome.POSTED_WITH_LEDGER_ENTRY
            message = f"Fattura {invoice.invoice_number} registrata in contabilità"
        elif revenue_account_id:
            outcome = CreationOutcome.CREATED_WITHOUT_LEDGER_ENTRY
            message = (
                f"Fattura {invoice.invoice_number} creata, ma il servizio non ha "
                f"registrato la scrittura contabile"
            )
            logger.warning(
                f"Fattura {invoice.invoice_number}: conto ricavi {revenue_account_id} "
                f"indicato ma nessuna scrittura contabile restituita"
            )
        else:
            outcome = CreationOutcome.CREATED_WITHOUT_LEDGER_ENTRY
            message = (
                f"Fattura {invoice.invoice_number} creata (nessun conto ricavi "
                f"selezionato: scrittura contabile non registrata)"
            )

        logger.info(f"Tentativo {attempt.id}: {message}")
        return InvoiceCreationResult(
            outcome=outcome,
            invoice=invoice,
            billed_item_ids=billing_item_ids,
            attempt_id=str(attempt.id),
            message=message,
        )
