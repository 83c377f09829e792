"""
Service per la Conversione Valuta (Snapshot)
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Converte l'importo di una voce nella valuta fattura con il tasso
inserito dall'operatore e conserva la terna di audit
(importo originale, valuta originale, tasso applicato).
Nessuna ricerca o deduzione del tasso.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from invoice_engine.core.exceptions import BusinessValidationError
from invoice_engine.schemas.billing import ChargeRecord


CENT = Decimal("0.01")
IDENTITY_RATE = Decimal("1")


def to_cents(value: Decimal) -> Decimal:
    """Arrotonda al centesimo (ROUND_HALF_UP)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class ConvertedAmount(BaseModel):
    """Importo convertito con la terna di audit."""

    amount: Decimal
    original_amount: Decimal
    original_currency: str
    rate_used: Decimal

    model_config = ConfigDict(frozen=True)


class CurrencySnapshotConverter:
    """
    Conversione con tasso unico inserito dall'operatore.

    Il tasso si applica uniformemente a tutte le voci la cui valuta
    differisce da quella della fattura.
    """

    @staticmethod
    def needs_conversion(charge_currency: Optional[str], target_currency: str) -> bool:
        """True se la voce è in una valuta diversa da quella fattura."""
        return bool(charge_currency) and charge_currency.upper() != target_currency.upper()

    @staticmethod
    def convert(
        amount: Decimal,
        currency: Optional[str],
        target_currency: str,
        exchange_rate: Optional[Decimal],
    ) -> ConvertedAmount:
        """
        Converte un importo nella valuta di destinazione.

        Regola:
        - stessa valuta: tasso = 1, importo (e originale) al centesimo
        - valuta diversa: importo = amount * exchange_rate

        Args:
            amount: Importo originale
            currency: Valuta originale (se assente si assume quella fattura)
            target_currency: Valuta della fattura
            exchange_rate: Tasso inserito dall'operatore

        Returns:
            ConvertedAmount: importo convertito al centesimo più dati di audit

        Raises:
            BusinessValidationError: tasso mancante o non positivo quando serve
        """
        original_amount = Decimal(amount)
        original_currency = (currency or target_currency).upper()

        if not CurrencySnapshotConverter.needs_conversion(original_currency, target_currency):
            # Identità: importo e originale coincidono, entrambi al centesimo
            amount = to_cents(original_amount)
            return ConvertedAmount(
                amount=amount,
                original_amount=amount,
                original_currency=original_currency,
                rate_used=IDENTITY_RATE,
            )

        if exchange_rate is None or exchange_rate <= 0:
            raise BusinessValidationError(
                f"Tasso di cambio mancante o non valido per convertire "
                f"{original_currency} in {target_currency.upper()}",
                error_code="EXCHANGE_RATE_REQUIRED",
            )

        return ConvertedAmount(
            amount=to_cents(original_amount * exchange_rate),
            original_amount=original_amount,
            original_currency=original_currency,
            rate_used=Decimal(exchange_rate),
        )

    @staticmethod
    def validate_rate(
        charges: Iterable[ChargeRecord],
        target_currency: str,
        exchange_rate: Optional[Decimal],
    ) -> None:
        """
        Verifica che il tasso sia presente quando almeno una voce va convertita.

        Raises:
            BusinessValidationError: tasso mancante o pari a zero
        """
        foreign = sorted({
            c.currency for c in charges
            if CurrencySnapshotConverter.needs_conversion(c.currency, target_currency)
        })
        if foreign and (exchange_rate is None or exchange_rate <= 0):
            raise BusinessValidationError(
                f"Tasso di cambio obbligatorio per le voci in {', '.join(foreign)}",
                error_code="EXCHANGE_RATE_REQUIRED",
                extra={"currencies": foreign},
            )
