"""
Unit tests for CurrencySnapshotConverter.
"""

from decimal import Decimal

import pytest

from invoice_engine.core.exceptions import BusinessValidationError
from invoice_engine.services.currency_service import CurrencySnapshotConverter, to_cents


# ============================================================
# Tests for conversion identity
# ============================================================


class TestConversionIdentity:
    """Same-currency charges are never converted."""

    def test_same_currency_keeps_amount_and_rate_one(self):
        """Test voce già nella valuta fattura: importo invariato, tasso 1."""
        result = CurrencySnapshotConverter.convert(
            Decimal("1000.00"), "PHP", "PHP", Decimal("56.0")
        )

        assert result.amount == Decimal("1000.00")
        assert result.original_amount == Decimal("1000.00")
        assert result.original_currency == "PHP"
        assert result.rate_used == Decimal("1")

    def test_same_currency_ignores_missing_rate(self):
        """Test tasso assente non richiesto se la valuta coincide."""
        result = CurrencySnapshotConverter.convert(Decimal("250.50"), "php", "PHP", None)

        assert result.amount == Decimal("250.50")
        assert result.rate_used == Decimal("1")

    def test_missing_currency_assumes_invoice_currency(self):
        """Test voce senza valuta trattata come valuta fattura."""
        result = CurrencySnapshotConverter.convert(Decimal("10"), None, "PHP", None)

        assert result.original_currency == "PHP"
        assert result.amount == Decimal("10.00")

    def test_sub_cent_amount_identity_preserved(self):
        """Test importo con più di due decimali: originale e convertito coincidono."""
        result = CurrencySnapshotConverter.convert(Decimal("10.005"), "PHP", "PHP", None)

        assert result.amount == Decimal("10.01")
        assert result.original_amount == result.amount
        assert result.rate_used == Decimal("1")


# ============================================================
# Tests for foreign currency snapshot
# ============================================================


class TestForeignConversion:
    """Foreign charges are multiplied by the operator rate."""

    def test_usd_to_php(self):
        """Test 100 USD a 56.0 → 5600.00 PHP con terna di audit."""
        result = CurrencySnapshotConverter.convert(
            Decimal("100.00"), "USD", "PHP", Decimal("56.0")
        )

        assert result.amount == Decimal("5600.00")
        assert result.original_amount == Decimal("100.00")
        assert result.original_currency == "USD"
        assert result.rate_used == Decimal("56.0")

    def test_converted_amount_rounded_to_cents(self):
        """Test arrotondamento ROUND_HALF_UP al centesimo."""
        result = CurrencySnapshotConverter.convert(
            Decimal("10.01"), "USD", "PHP", Decimal("56.125")
        )

        # 10.01 * 56.125 = 561.81125
        assert result.amount == Decimal("561.81")

    @pytest.mark.parametrize("rate", [None, Decimal("0"), Decimal("-1")])
    def test_invalid_rate_rejected(self, rate):
        """Test tasso mancante, zero o negativo rifiutato."""
        with pytest.raises(BusinessValidationError) as exc_info:
            CurrencySnapshotConverter.convert(Decimal("100"), "USD", "PHP", rate)

        assert exc_info.value.error_code == "EXCHANGE_RATE_REQUIRED"


# ============================================================
# Tests for rate validation over a selection
# ============================================================


class TestValidateRate:
    """Tests for the pre-submission rate check."""

    def test_rate_required_when_any_foreign_charge(self, php_charge, usd_charge):
        """Test tasso obbligatorio se almeno una voce è in valuta estera."""
        with pytest.raises(BusinessValidationError) as exc_info:
            CurrencySnapshotConverter.validate_rate([php_charge, usd_charge], "PHP", None)

        assert exc_info.value.extra == {"currencies": ["USD"]}

    def test_rate_not_required_for_single_currency(self, php_charge):
        """Test nessun tasso richiesto se tutte le voci sono in PHP."""
        CurrencySnapshotConverter.validate_rate([php_charge], "PHP", None)

    def test_to_cents_half_up(self):
        """Test arrotondamento half-up."""
        assert to_cents(Decimal("0.125")) == Decimal("0.13")
        assert to_cents(Decimal("0.124")) == Decimal("0.12")
