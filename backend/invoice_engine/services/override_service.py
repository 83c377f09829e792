"""
Service per Selezione e Personalizzazioni di Riga
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Definisce:
- TaxAndOverrideResolver: personalizzazione di riga e IVA (unica aliquota 12%)
- DraftSession: stato di selezione di una sessione di compilazione,
  mappa id → LineOverride posseduta dalla sessione e scartata
  su annulla/emissione
"""

import logging
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from invoice_engine.core.exceptions import BusinessValidationError, NotFoundError
from invoice_engine.schemas.billing import ChargeRecord, LineOverride, TaxType
from invoice_engine.schemas.invoice import DraftInvoiceInput, InvoiceHeader
from invoice_engine.services.currency_service import to_cents

# Logger per questo modulo
logger = logging.getLogger(__name__)


VAT_RATE = Decimal("0.12")
DEFAULT_OVERRIDE = LineOverride()


class TaxAndOverrideResolver:
    """Risolve la personalizzazione di riga e calcola l'IVA."""

    @staticmethod
    def resolve(overrides: Mapping[str, LineOverride], charge_id: str) -> LineOverride:
        """Restituisce la personalizzazione della voce o quella predefinita."""
        return overrides.get(charge_id, DEFAULT_OVERRIDE)

    @staticmethod
    def line_tax(amount: Decimal, tax_type: TaxType) -> Decimal:
        """IVA di riga: amount * 12% se VAT, altrimenti zero."""
        if tax_type == TaxType.VAT:
            return to_cents(amount * VAT_RATE)
        return Decimal("0.00")


class DraftSession:
    """
    Selezione e personalizzazioni di una sessione di compilazione fattura.

    Invarianti:
    - ogni voce selezionata ha una personalizzazione, e viceversa
    - solo voci 'unbilled' sono selezionabili
    - "seleziona tutto" è idempotente e non sovrascrive personalizzazioni esistenti
    """

    def __init__(self, charges: Iterable[ChargeRecord] = ()) -> None:
        self._charges: dict[str, ChargeRecord] = {c.id: c for c in charges}
        self._selected: set[str] = set()
        self._overrides: dict[str, LineOverride] = {}

    # ------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------
    @property
    def charges(self) -> list[ChargeRecord]:
        return list(self._charges.values())

    @property
    def unbilled_charges(self) -> list[ChargeRecord]:
        """Voci selezionabili, nell'ordine della sorgente."""
        return [c for c in self._charges.values() if c.is_selectable]

    @property
    def selected_ids(self) -> list[str]:
        """Id selezionati, nell'ordine della sorgente."""
        return [cid for cid in self._charges if cid in self._selected]

    @property
    def selected_charges(self) -> list[ChargeRecord]:
        return [self._charges[cid] for cid in self.selected_ids]

    @property
    def overrides(self) -> dict[str, LineOverride]:
        """Copia della mappa delle personalizzazioni."""
        return dict(self._overrides)

    def is_selected(self, charge_id: str) -> bool:
        return charge_id in self._selected

    # ------------------------------------------------------------
    # Selezione
    # ------------------------------------------------------------
    def _get_selectable(self, charge_id: str) -> ChargeRecord:
        charge = self._charges.get(charge_id)
        if charge is None:
            raise NotFoundError(f"Voce di addebito {charge_id} non trovata")
        if not charge.is_selectable:
            raise BusinessValidationError(
                f"La voce {charge_id} è in stato '{charge.status.value}' e non può essere fatturata",
                error_code="CHARGE_NOT_SELECTABLE",
            )
        return charge

    def select(self, charge_id: str) -> None:
        """Seleziona una voce creando la personalizzazione predefinita se assente."""
        self._get_selectable(charge_id)
        self._overrides.setdefault(charge_id, DEFAULT_OVERRIDE)
        self._selected.add(charge_id)

    def deselect(self, charge_id: str) -> None:
        """Deseleziona una voce e ne scarta la personalizzazione."""
        self._selected.discard(charge_id)
        self._overrides.pop(charge_id, None)

    def toggle(self, charge_id: str) -> None:
        if charge_id in self._selected:
            self.deselect(charge_id)
        else:
            self.select(charge_id)

    def select_all(self) -> None:
        """Seleziona tutte le voci unbilled senza toccare le personalizzazioni esistenti."""
        for charge in self.unbilled_charges:
            self._overrides.setdefault(charge.id, DEFAULT_OVERRIDE)
            self._selected.add(charge.id)

    def toggle_all(self) -> None:
        """Se tutto è selezionato svuota la selezione, altrimenti seleziona tutto."""
        if len(self._selected) == len(self.unbilled_charges):
            self.clear()
        else:
            self.select_all()

    def clear(self) -> None:
        self._selected.clear()
        self._overrides.clear()

    # ------------------------------------------------------------
    # Personalizzazioni
    # ------------------------------------------------------------
    def update_override(
        self,
        charge_id: str,
        remarks: Optional[str] = None,
        tax_type: Optional[TaxType] = None,
    ) -> LineOverride:
        """
        Aggiorna note e/o regime IVA di una voce selezionata.

        Raises:
            BusinessValidationError: la voce non è selezionata
        """
        if charge_id not in self._selected:
            raise BusinessValidationError(
                f"La voce {charge_id} non è selezionata",
                error_code="CHARGE_NOT_SELECTED",
            )
        update: dict = {}
        if remarks is not None:
            update["remarks"] = remarks
        if tax_type is not None:
            update["tax_type"] = TaxType(tax_type)
        override = self._overrides[charge_id].model_copy(update=update)
        self._overrides[charge_id] = override
        return override

    # ------------------------------------------------------------
    # Ricarica dopo un tentativo fallito
    # ------------------------------------------------------------
    def refresh(
        self,
        charges: Iterable[ChargeRecord],
        id_map: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Sostituisce le voci con una nuova unione (reali + virtuali).

        Le selezioni su voci virtuali ormai persistite vengono trasferite
        alla voce reale corrispondente (via id_map o source_quotation_item_id),
        così una voce promossa torna selezionabile senza duplicarla.
        Le selezioni non più valide vengono scartate.
        """
        new_charges = {c.id: c for c in charges}
        by_source = {
            c.source_quotation_item_id: c.id
            for c in new_charges.values()
            if c.source_quotation_item_id and not c.is_virtual
        }
        id_map = id_map or {}

        selected: set[str] = set()
        overrides: dict[str, LineOverride] = {}
        for old_id in self.selected_ids:
            old_charge = self._charges[old_id]
            new_id = old_id
            if old_id not in new_charges:
                new_id = id_map.get(old_id) or by_source.get(
                    old_charge.source_quotation_item_id or ""
                )
            charge = new_charges.get(new_id) if new_id else None
            if charge is None or not charge.is_selectable:
                logger.info(f"Selezione scartata per la voce {old_id}: non più fatturabile")
                continue
            selected.add(charge.id)
            overrides[charge.id] = self._overrides.get(old_id, DEFAULT_OVERRIDE)

        self._charges = new_charges
        self._selected = selected
        self._overrides = overrides

    # ------------------------------------------------------------
    # Ingresso per il calcolo della bozza
    # ------------------------------------------------------------
    def to_draft_input(
        self,
        currency: str,
        exchange_rate: Optional[Decimal] = None,
        header: Optional[InvoiceHeader] = None,
    ) -> DraftInvoiceInput:
        """Fotografia immutabile della sessione per il calcolo della bozza."""
        return DraftInvoiceInput(
            selected_charges=tuple(self.selected_charges),
            overrides=self.overrides,
            currency=currency,
            exchange_rate=exchange_rate,
            header=header or InvoiceHeader(),
        )

    @classmethod
    def from_selection(
        cls,
        charges: Iterable[ChargeRecord],
        selected_ids: Iterable[str],
        overrides: Optional[Mapping[str, LineOverride]] = None,
    ) -> "DraftSession":
        """
        Ricostruisce una sessione da una selezione esplicita (API stateless).

        Raises:
            NotFoundError: id selezionato sconosciuto
            BusinessValidationError: voce selezionata non unbilled
        """
        session = cls(charges)
        overrides = overrides or {}
        for charge_id in selected_ids:
            session.select(charge_id)
            if charge_id in overrides:
                session._overrides[charge_id] = overrides[charge_id]
        return session
