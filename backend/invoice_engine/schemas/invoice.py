"""
Schemas Pydantic per la Fatturazione
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Contiene:
- Enums: InvoiceStatus, BalanceStatus, CreationOutcome
- InvoiceLineItem: riga congelata (snapshot valuta/cambio/importo)
- InvoiceMetadata: firmatari, opzioni di stampa, campi zona A
- Invoice: fattura (bozza o emessa), immutabile
- Schemas di richiesta per bozza, emissione, saldo, ristampa
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from invoice_engine.core.config import settings
from invoice_engine.core.exceptions import BusinessValidationError
from invoice_engine.schemas.billing import ChargeRecord, LineOverride, Money, TaxType


DRAFT_INVOICE_ID = "draft-preview"
DRAFT_INVOICE_NUMBER = "INV-DRAFT"


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class InvoiceStatus(str, Enum):
    """Stato del documento."""
    DRAFT = "draft"
    POSTED = "posted"


class BalanceStatus(str, Enum):
    """Stato calcolato in base agli incassi."""
    PAID = "paid"
    OVERDUE = "overdue"
    PARTIAL = "partial"
    OPEN = "open"


class CreationOutcome(str, Enum):
    """Esito della creazione: con o senza scrittura contabile."""
    POSTED_WITH_LEDGER_ENTRY = "posted_with_ledger_entry"
    CREATED_WITHOUT_LEDGER_ENTRY = "created_without_ledger_entry"


# -------------------------------------------------------------------
# Schemas per InvoiceLineItem
# -------------------------------------------------------------------

class InvoiceLineItem(BaseModel):
    """
    Riga fattura con snapshot della conversione.

    original_amount * exchange_rate_applied == amount (a meno
    dell'arrotondamento al centesimo) quando la valuta differisce;
    altrimenti amount == original_amount ed exchange_rate_applied == 1.
    """

    source_id: str = Field(..., description="Voce di addebito di origine")
    description: str
    remarks: str = ""
    quantity: int = Field(default=1, ge=1)
    unit_price: Money
    amount: Money = Field(..., description="Importo convertito nella valuta fattura")
    tax_type: TaxType = TaxType.NON_VAT
    tax_amount: Money = Field(default=Decimal("0.00"), description="IVA di riga")
    original_amount: Money
    original_currency: str
    exchange_rate_applied: Money = Decimal("1")

    model_config = ConfigDict(frozen=True, from_attributes=True)


# -------------------------------------------------------------------
# Schemas per InvoiceMetadata
# -------------------------------------------------------------------

class Signatory(BaseModel):
    """Firmatario stampato in fattura."""
    name: str
    title: str

    model_config = ConfigDict(frozen=True)


class Signatories(BaseModel):
    """Firmatari del documento."""

    prepared_by: Signatory = Field(
        default_factory=lambda: Signatory(
            name=settings.default_prepared_by_name, title="Authorized User"
        )
    )
    approved_by: Signatory = Field(
        default_factory=lambda: Signatory(
            name=settings.default_approved_by_name, title="Authorized Signatory"
        )
    )

    model_config = ConfigDict(frozen=True)


class DisplayOptions(BaseModel):
    """Sezioni opzionali del documento stampato."""

    show_bank_details: bool = True
    show_notes: bool = True
    show_tax_summary: bool = True

    model_config = ConfigDict(frozen=True)


class ZoneAFields(BaseModel):
    """Campi di intestazione specifici della giurisdizione."""

    customer_tin: str = ""
    bl_number: str = Field(default="", description="Numero polizza di carico")
    consignee: str = ""
    commodity_description: str = ""
    credit_terms: str = Field(default_factory=lambda: settings.default_credit_terms)

    model_config = ConfigDict(frozen=True)


class InvoiceMetadata(BaseModel):
    """
    Dati usati solo per la stampa.

    Possono cambiare dopo l'emissione senza toccare righe e totali.
    """

    signatories: Signatories = Field(default_factory=Signatories)
    display_options: DisplayOptions = Field(default_factory=DisplayOptions)
    zone_a_fields: ZoneAFields = Field(default_factory=ZoneAFields)
    item_overrides: dict[str, LineOverride] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


# -------------------------------------------------------------------
# Schemas per Invoice
# -------------------------------------------------------------------

class Invoice(BaseModel):
    """
    Fattura consolidata.

    Immutabile: una volta emessa, righe e totali non vengono ricalcolati.
    La ristampa produce una copia con note/metadata aggiornati.
    """

    id: str
    invoice_number: str
    invoice_date: date
    due_date: date
    customer_id: Optional[str] = None
    customer_name: str = "Unknown Customer"
    customer_address: str = ""
    project_number: Optional[str] = None
    currency: str
    exchange_rate: Money = Decimal("1")
    original_currency: Optional[str] = None
    line_items: tuple[InvoiceLineItem, ...] = ()
    subtotal: Money
    tax_amount: Money
    total_amount: Money
    notes: str = ""
    payment_status: str = "unpaid"
    status: InvoiceStatus = InvoiceStatus.DRAFT
    metadata: InvoiceMetadata = Field(default_factory=InvoiceMetadata)
    journal_entry_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")

    @property
    def source_ids(self) -> list[str]:
        """Voci di addebito consumate dalla fattura."""
        return [line.source_id for line in self.line_items]

    def with_reprint_fields(
        self,
        notes: Optional[str] = None,
        metadata: Optional[InvoiceMetadata] = None,
    ) -> "Invoice":
        """Copia per la ristampa: cambia solo note e metadata."""
        update: dict = {}
        if notes is not None:
            update["notes"] = notes
        if metadata is not None:
            update["metadata"] = metadata
        return self.model_copy(update=update)


class InvoiceHeader(BaseModel):
    """Campi liberi di intestazione inseriti dall'operatore."""

    invoice_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = Field(
        None,
        description="Data scadenza (default: invoice_date + 30 giorni)"
    )
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_address: str = ""
    project_number: Optional[str] = None
    original_currency: Optional[str] = Field(
        None,
        description="Valuta del progetto, conservata come contesto"
    )
    notes: str = ""
    metadata: InvoiceMetadata = Field(default_factory=InvoiceMetadata)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_dates(self) -> "InvoiceHeader":
        """Valida che due_date >= invoice_date."""
        if self.due_date is not None and self.due_date < self.invoice_date:
            raise BusinessValidationError(
                "La data di scadenza non può essere precedente alla data fattura"
            )
        return self


class DraftInvoiceInput(BaseModel):
    """
    Ingressi del calcolo della bozza.

    Confrontabile per uguaglianza: è la chiave di memoizzazione.
    """

    selected_charges: tuple[ChargeRecord, ...] = ()
    overrides: dict[str, LineOverride] = Field(default_factory=dict)
    currency: str = Field(..., min_length=3, max_length=3)
    exchange_rate: Optional[Money] = None
    header: InvoiceHeader = Field(default_factory=InvoiceHeader)

    model_config = ConfigDict(frozen=True)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class DraftInvoiceRequest(BaseModel):
    """Richiesta di anteprima: voci disponibili, selezione e personalizzazioni."""

    charges: list[ChargeRecord] = Field(default_factory=list)
    selected_ids: list[str] = Field(default_factory=list)
    overrides: dict[str, LineOverride] = Field(default_factory=dict)
    currency: str = Field(
        default_factory=lambda: settings.default_currency,
        min_length=3,
        max_length=3,
    )
    exchange_rate: Optional[Money] = Field(
        None,
        description="Tasso applicato alle voci in valuta diversa"
    )
    header: InvoiceHeader = Field(default_factory=InvoiceHeader)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class InvoiceSubmitRequest(DraftInvoiceRequest):
    """Richiesta di emissione."""

    project_id: str = Field(..., description="Progetto a cui appartengono le voci")
    revenue_account_id: Optional[str] = Field(
        None,
        description="Conto ricavi per la scrittura DR Crediti / CR Ricavi"
    )
    attempt_id: Optional[str] = Field(
        None,
        description="Tentativo precedente da riprendere dopo un errore"
    )


class InvoiceCreationResult(BaseModel):
    """Esito di un'emissione riuscita."""

    outcome: CreationOutcome
    invoice: Invoice
    billed_item_ids: list[str]
    attempt_id: str
    message: str

    @computed_field
    @property
    def posted_to_ledger(self) -> bool:
        """True solo se esiste la scrittura contabile."""
        return self.outcome == CreationOutcome.POSTED_WITH_LEDGER_ENTRY


class InvoiceRenderRequest(BaseModel):
    """Ristampa: fattura emessa più eventuali note/metadata aggiornati."""

    invoice: Invoice
    notes: Optional[str] = None
    metadata: Optional[InvoiceMetadata] = None


# -------------------------------------------------------------------
# Schemas per Incassi e Saldo
# -------------------------------------------------------------------

class Collection(BaseModel):
    """Incasso registrato nel servizio remoto."""

    invoice_id: str
    amount: Money
    collection_date: Optional[date] = Field(
        None,
        validation_alias=AliasChoices("date", "collection_date"),
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BalanceEvaluation(BaseModel):
    """Saldo residuo e stato calcolati in lettura."""

    invoice_id: str
    paid_amount: Money
    balance: Money
    status: BalanceStatus


class BalanceRequest(BaseModel):
    """Richiesta di calcolo saldo."""

    invoice: Invoice
    collections: list[Collection] = Field(default_factory=list)
    as_of: Optional[date] = None


class ProjectInvoiceSummary(BaseModel):
    """Totali di progetto calcolati su tutte le fatture."""

    project_id: str
    invoices_count: int
    total_invoiced: Money
    total_outstanding: Money
    balances: list[BalanceEvaluation] = Field(default_factory=list)
