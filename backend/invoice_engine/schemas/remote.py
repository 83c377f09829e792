"""
Schemas Pydantic per il Servizio Remoto
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Contratto tipizzato delle chiamate verso il servizio di persistenza.
Ogni envelope JSON {success, data | items, error} viene normalizzato
qui, una sola volta, al confine del servizio.
"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from invoice_engine.schemas.billing import ChargeRecord, ChargeRecordCreate, Money
from invoice_engine.schemas.invoice import InvoiceLineItem, InvoiceMetadata


class MalformedResponse(Exception):
    """Risposta del servizio remoto non conforme al contratto."""


# -------------------------------------------------------------------
# Promozione batch
# -------------------------------------------------------------------

class BatchPromoteRequest(BaseModel):
    """Richiesta di persistenza batch delle voci virtuali."""

    items: list[ChargeRecordCreate]
    project_id: str


class BatchPromoteResponse(BaseModel):
    """Voci persistite restituite dal servizio, già normalizzate."""

    success: bool
    items: list[ChargeRecord] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_envelope(cls, body: Any) -> "BatchPromoteResponse":
        """
        Normalizza le forme osservate della risposta:
        - {success, data: {items: [...]}}
        - {success, data: [...]}
        - {success, items: [...]}

        Raises:
            MalformedResponse: envelope non riconosciuto o voci non valide
        """
        if not isinstance(body, dict) or "success" not in body:
            raise MalformedResponse("Envelope di promozione non riconosciuto")

        if not body["success"]:
            return cls(success=False, error=str(body.get("error") or "Errore sconosciuto"))

        data = body.get("data")
        if isinstance(data, dict) and isinstance(data.get("items"), list):
            raw_items = data["items"]
        elif isinstance(data, list):
            raw_items = data
        elif isinstance(body.get("items"), list):
            raw_items = body["items"]
        else:
            raise MalformedResponse("La risposta di promozione non contiene voci")

        try:
            items = [ChargeRecord.model_validate(item) for item in raw_items]
        except ValidationError as e:
            raise MalformedResponse(f"Voce promossa non valida: {e}") from e

        return cls(success=True, items=items)


# -------------------------------------------------------------------
# Creazione fattura
# -------------------------------------------------------------------

class InvoiceCreationPayload(BaseModel):
    """Payload dell'endpoint di creazione fattura (registrazione lato server)."""

    project_number: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: str
    customer_address: str = ""
    billing_item_ids: list[str]
    invoice_date: date
    due_date: date
    notes: str = ""
    user_name: str

    currency: str
    exchange_rate: Money
    original_currency: Optional[str] = None
    line_items: list[InvoiceLineItem]
    subtotal: Money
    tax_amount: Money
    total_amount: Money

    revenue_account_id: Optional[str] = None
    metadata: InvoiceMetadata

    model_config = ConfigDict(frozen=True)


class InvoiceCreationResponse(BaseModel):
    """Esito normalizzato dell'endpoint di creazione."""

    success: bool
    invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    journal_entry_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_envelope(cls, body: Any) -> "InvoiceCreationResponse":
        """
        Normalizza {success, data: {id?, invoice_number, journal_entry_id?}}
        oppure {success: false, error}.

        Raises:
            MalformedResponse: envelope non riconosciuto
        """
        if not isinstance(body, dict) or "success" not in body:
            raise MalformedResponse("Envelope di creazione fattura non riconosciuto")

        if not body["success"]:
            return cls(success=False, error=str(body.get("error") or "Errore sconosciuto"))

        data = body.get("data")
        if not isinstance(data, dict) or not data.get("invoice_number"):
            raise MalformedResponse("La risposta di creazione non contiene invoice_number")

        journal_entry_id = data.get("journal_entry_id")
        return cls(
            success=True,
            invoice_id=str(data["id"]) if data.get("id") else None,
            invoice_number=str(data["invoice_number"]),
            journal_entry_id=str(journal_entry_id) if journal_entry_id else None,
        )
