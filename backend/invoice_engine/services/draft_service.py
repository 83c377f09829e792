"""
Service per il Calcolo della Bozza Fattura
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Calcolo puro e deterministico: voci selezionate + personalizzazioni +
valuta/cambio + intestazione → Invoice in stato 'draft'.

Lo stesso percorso di calcolo produce l'anteprima mostrata all'operatore
e la fattura inviata al servizio remoto.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Mapping, Optional

from invoice_engine.core.config import settings
from invoice_engine.core.exceptions import BusinessValidationError
from invoice_engine.schemas.invoice import (
    DRAFT_INVOICE_ID,
    DRAFT_INVOICE_NUMBER,
    DraftInvoiceInput,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
)
from invoice_engine.services.currency_service import (
    IDENTITY_RATE,
    CurrencySnapshotConverter,
)
from invoice_engine.services.override_service import TaxAndOverrideResolver

# Logger per questo modulo
logger = logging.getLogger(__name__)


def compute_draft(
    data: DraftInvoiceInput,
    default_due_days: int = 30,
) -> Invoice:
    """
    Calcola la bozza fattura.

    Steps:
    1. Verifica che tutte le voci siano unbilled
    2. Verifica il tasso se almeno una voce va convertita
    3. Per ogni voce: conversione snapshot, personalizzazione, IVA di riga
    4. subtotal = Σ amount, tax_amount = Σ IVA di riga, total = subtotal + tax
    5. due_date = invoice_date + default_due_days se non indicata

    Gli importi sono arrotondati al centesimo riga per riga, quindi i
    totali sono somme esatte delle righe.

    Args:
        data: Ingressi immutabili della bozza
        default_due_days: Giorni di scadenza predefiniti

    Returns:
        Invoice: bozza con id/numero segnaposto e status 'draft'

    Raises:
        BusinessValidationError: voce non fatturabile o tasso mancante
    """
    for charge in data.selected_charges:
        if not charge.is_selectable:
            raise BusinessValidationError(
                f"La voce {charge.id} è in stato '{charge.status.value}' e non può essere fatturata",
                error_code="CHARGE_NOT_SELECTABLE",
            )

    CurrencySnapshotConverter.validate_rate(
        data.selected_charges, data.currency, data.exchange_rate
    )

    line_items = []
    subtotal = Decimal("0.00")
    tax_amount = Decimal("0.00")

    for charge in data.selected_charges:
        override = TaxAndOverrideResolver.resolve(data.overrides, charge.id)
        converted = CurrencySnapshotConverter.convert(
            charge.amount, charge.currency, data.currency, data.exchange_rate
        )
        line_tax = TaxAndOverrideResolver.line_tax(converted.amount, override.tax_type)

        subtotal += converted.amount
        tax_amount += line_tax

        line_items.append(
            InvoiceLineItem(
                source_id=charge.id,
                description=charge.description,
                remarks=override.remarks,
                quantity=1,
                unit_price=converted.amount,
                amount=converted.amount,
                tax_type=override.tax_type,
                tax_amount=line_tax,
                original_amount=converted.original_amount,
                original_currency=converted.original_currency,
                exchange_rate_applied=converted.rate_used,
            )
        )

    header = data.header
    due_date = header.due_date or header.invoice_date + timedelta(days=default_due_days)

    # Le personalizzazioni viaggiano anche nei metadata per la ristampa
    metadata = header.metadata.model_copy(update={"item_overrides": dict(data.overrides)})

    return Invoice(
        id=DRAFT_INVOICE_ID,
        invoice_number=DRAFT_INVOICE_NUMBER,
        invoice_date=header.invoice_date,
        due_date=due_date,
        customer_id=header.customer_id,
        customer_name=header.customer_name or "Unknown Customer",
        customer_address=header.customer_address,
        project_number=header.project_number,
        currency=data.currency,
        exchange_rate=data.exchange_rate or IDENTITY_RATE,
        original_currency=header.original_currency,
        line_items=tuple(line_items),
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=subtotal + tax_amount,
        notes=header.notes,
        payment_status="unpaid",
        status=InvoiceStatus.DRAFT,
        metadata=metadata,
    )


def remap_draft_input(data: DraftInvoiceInput, id_map: Mapping[str, str]) -> DraftInvoiceInput:
    """
    Riscrive gli id delle voci (e le chiavi delle personalizzazioni)
    attraverso la mappa virtuale → reale. Gli id non mappati restano invariati.
    """
    if not id_map:
        return data

    charges = tuple(
        charge.model_copy(update={"id": id_map[charge.id], "is_virtual": False})
        if charge.id in id_map
        else charge
        for charge in data.selected_charges
    )
    overrides = {id_map.get(cid, cid): override for cid, override in data.overrides.items()}
    return data.model_copy(update={"selected_charges": charges, "overrides": overrides})


class DraftInvoiceCalculator:
    """
    Ricalcolo della bozza ad ogni cambio di input.

    Memoizza solo l'ultimo risultato, per uguaglianza degli ingressi.
    """

    def __init__(self, default_due_days: Optional[int] = None) -> None:
        self.default_due_days = (
            default_due_days if default_due_days is not None else settings.default_due_days
        )
        self._last_input: Optional[DraftInvoiceInput] = None
        self._last_draft: Optional[Invoice] = None

    def compute(self, data: DraftInvoiceInput) -> Invoice:
        if self._last_input is not None and self._last_input == data:
            return self._last_draft

        draft = compute_draft(data, default_due_days=self.default_due_days)
        self._last_input = data
        self._last_draft = draft
        return draft
