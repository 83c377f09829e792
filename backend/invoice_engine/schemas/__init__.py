"""
Schemas Pydantic per il progetto Logistics Back-Office

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione di richieste, risposte API e contratto del servizio remoto.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from invoice_engine.schemas import ChargeRecord, Invoice

from invoice_engine.schemas.billing import (
    VIRTUAL_ID_PREFIX,
    Account,
    BillingMergeRequest,
    ChargeRecord,
    ChargeRecordCreate,
    ChargeStatus,
    LineOverride,
    Money,
    Quotation,
    QuotationCategory,
    QuotationLineItem,
    TaxType,
)
from invoice_engine.schemas.invoice import (
    DRAFT_INVOICE_ID,
    DRAFT_INVOICE_NUMBER,
    BalanceEvaluation,
    BalanceRequest,
    BalanceStatus,
    Collection,
    CreationOutcome,
    DisplayOptions,
    DraftInvoiceInput,
    DraftInvoiceRequest,
    Invoice,
    InvoiceCreationResult,
    InvoiceHeader,
    InvoiceLineItem,
    InvoiceMetadata,
    InvoiceRenderRequest,
    InvoiceStatus,
    InvoiceSubmitRequest,
    ProjectInvoiceSummary,
    Signatories,
    Signatory,
    ZoneAFields,
)

__all__ = [
    # Billing
    "VIRTUAL_ID_PREFIX",
    "Account",
    "BillingMergeRequest",
    "ChargeRecord",
    "ChargeRecordCreate",
    "ChargeStatus",
    "LineOverride",
    "Money",
    "Quotation",
    "QuotationCategory",
    "QuotationLineItem",
    "TaxType",
    # Invoice
    "DRAFT_INVOICE_ID",
    "DRAFT_INVOICE_NUMBER",
    "BalanceEvaluation",
    "BalanceRequest",
    "BalanceStatus",
    "Collection",
    "CreationOutcome",
    "DisplayOptions",
    "DraftInvoiceInput",
    "DraftInvoiceRequest",
    "Invoice",
    "InvoiceCreationResult",
    "InvoiceHeader",
    "InvoiceLineItem",
    "InvoiceMetadata",
    "InvoiceRenderRequest",
    "InvoiceStatus",
    "InvoiceSubmitRequest",
    "ProjectInvoiceSummary",
    "Signatories",
    "Signatory",
    "ZoneAFields",
]
