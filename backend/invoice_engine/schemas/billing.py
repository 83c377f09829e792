"""
Schemas Pydantic per le Voci di Addebito
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Contiene:
- Enums: ChargeStatus, TaxType
- ChargeRecord: voce di addebito (reale o virtuale)
- LineOverride: personalizzazione di riga (note, regime IVA)
- Schemas per quotazione (origine delle voci virtuali)
- Account: conto di ricavo per la registrazione contabile
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator


VIRTUAL_ID_PREFIX = "virtual-"


def money_to_json(value: Decimal) -> float:
    """
    Numero JSON per un importo Decimal.

    Il float deve rileggersi come lo stesso Decimal: un valore non
    rappresentabile esattamente viene rifiutato invece di arrotondarlo.
    """
    number = float(value)
    if Decimal(repr(number)) != value:
        raise ValueError(f"Importo {value} non rappresentabile esattamente come numero JSON")
    return number


# Importo monetario: Decimal in memoria, numero JSON sul filo
Money = Annotated[Decimal, PlainSerializer(money_to_json, return_type=float, when_used="json")]


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class ChargeStatus(str, Enum):
    """Stato di fatturazione di una voce di addebito."""
    UNBILLED = "unbilled"
    BILLED = "billed"


class TaxType(str, Enum):
    """Regime IVA di riga. L'unica aliquota supportata è il 12%."""
    VAT = "VAT"
    NON_VAT = "NON-VAT"


# -------------------------------------------------------------------
# Schemas per ChargeRecord
# -------------------------------------------------------------------

class ChargeRecordBase(BaseModel):
    """Campi comuni a voci persistite e voci da persistere."""

    description: str = Field(
        ...,
        description="Descrizione della voce di addebito"
    )
    amount: Money = Field(
        ...,
        description="Importo nella valuta originale della voce"
    )
    currency: str = Field(
        ...,
        min_length=3,
        max_length=3,
        description="Valuta originale (ISO 4217)"
    )
    service_type: Optional[str] = Field(
        None,
        description="Tipo di servizio (Forwarding, Trucking, ...)"
    )
    status: ChargeStatus = Field(
        default=ChargeStatus.UNBILLED,
        description="Stato di fatturazione"
    )
    created_at: Optional[datetime] = Field(
        None,
        description="Data/ora creazione"
    )
    source_quotation_item_id: Optional[str] = Field(
        None,
        description="Riga di quotazione da cui la voce è derivata"
    )
    quotation_category: Optional[str] = Field(
        None,
        description="Categoria della quotazione di origine"
    )

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Normalizza il codice valuta in maiuscolo."""
        return v.upper()


class ChargeRecord(ChargeRecordBase):
    """
    Voce di addebito di un progetto.

    Le voci reali sono di proprietà del servizio remoto; le voci virtuali
    sono derivate da una quotazione, hanno id locale con prefisso
    'virtual-' e non sopravvivono a un tentativo di emissione.
    """

    id: str = Field(..., min_length=1, description="Identificativo della voce")
    is_virtual: bool = Field(
        default=False,
        description="True se la voce non è ancora persistita"
    )

    @property
    def is_selectable(self) -> bool:
        """Solo le voci unbilled possono entrare in una nuova fattura."""
        return self.status == ChargeStatus.UNBILLED

    def to_promotion_payload(self, project_id: str) -> "ChargeRecordCreate":
        """Rimuove id e flag virtuale per la persistenza batch."""
        return ChargeRecordCreate(
            project_id=project_id,
            description=self.description,
            amount=self.amount,
            currency=self.currency,
            service_type=self.service_type,
            status=ChargeStatus.UNBILLED,
            created_at=self.created_at,
            source_quotation_item_id=self.source_quotation_item_id,
            quotation_category=self.quotation_category,
        )


class ChargeRecordCreate(ChargeRecordBase):
    """Voce senza id inviata all'endpoint di promozione batch."""

    project_id: str = Field(..., description="Progetto di appartenenza")


# -------------------------------------------------------------------
# Schemas per LineOverride
# -------------------------------------------------------------------

class LineOverride(BaseModel):
    """
    Personalizzazione di una riga selezionata.

    Esiste solo finché la voce è selezionata.
    """

    remarks: str = Field(default="", description="Note libere di riga")
    tax_type: TaxType = Field(default=TaxType.NON_VAT, description="Regime IVA")

    model_config = ConfigDict(frozen=True)


# -------------------------------------------------------------------
# Schemas per Quotazione (origine voci virtuali)
# -------------------------------------------------------------------

class QuotationLineItem(BaseModel):
    """Riga di prezzo di vendita di una quotazione."""

    id: str = Field(..., description="Identificativo della riga di quotazione")
    description: str
    amount: Money = Field(..., description="Prezzo finale della riga")
    currency: str = Field(..., min_length=3, max_length=3)
    service: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class QuotationCategory(BaseModel):
    """Categoria di prezzi di vendita."""

    category_name: str
    line_items: list[QuotationLineItem] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class Quotation(BaseModel):
    """Quotazione accettata da cui derivano le voci virtuali."""

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    selling_price: list[QuotationCategory] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class BillingMergeRequest(BaseModel):
    """Richiesta di unione tra voci persistite e quotazione."""

    quotation: Optional[Quotation] = None


# -------------------------------------------------------------------
# Schemas per Account
# -------------------------------------------------------------------

class Account(BaseModel):
    """Conto del piano dei conti esposto dal servizio remoto."""

    id: str
    name: str
    code: Optional[str] = None
    type: str = Field(..., description="Tipo conto (Income, Asset, ...)")
    is_folder: bool = False

    model_config = ConfigDict(extra="ignore")

    @property
    def is_revenue(self) -> bool:
        """Conto di ricavo utilizzabile per la registrazione (non cartella)."""
        return self.type.lower() == "income" and not self.is_folder
