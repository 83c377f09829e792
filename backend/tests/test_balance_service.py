"""
Tests for read-side balance evaluation.
"""

from datetime import date
from decimal import Decimal

import pytest

from invoice_engine.schemas.invoice import BalanceStatus, Collection, Invoice, InvoiceStatus
from invoice_engine.services.balance_service import (
    InvoiceBalanceEvaluator,
    evaluate_balance,
    get_project_summary,
    summarize_invoices,
)


def make_invoice(invoice_id="inv-1", total="1000.00", due=date(2025, 3, 31)):
    return Invoice(
        id=invoice_id,
        invoice_number=f"INV-{invoice_id}",
        invoice_date=date(2025, 3, 1),
        due_date=due,
        currency="PHP",
        subtotal=Decimal(total),
        tax_amount=Decimal("0.00"),
        total_amount=Decimal(total),
        status=InvoiceStatus.POSTED,
    )


def pay(amount, invoice_id="inv-1"):
    return Collection(invoice_id=invoice_id, amount=Decimal(amount))


# ============================================================
# Tests for status rules
# ============================================================


class TestEvaluateBalance:
    """Status is paid, overdue, partial or open, in that order."""

    def test_open_without_collections(self):
        """Test nessun incasso e non scaduta → open."""
        result = evaluate_balance(make_invoice(), [], today=date(2025, 3, 10))

        assert result.status == BalanceStatus.OPEN
        assert result.balance == Decimal("1000.00")
        assert result.paid_amount == Decimal("0.00")

    def test_partial(self):
        """Test incasso parziale → partial."""
        result = evaluate_balance(make_invoice(), [pay("400")], today=date(2025, 3, 10))

        assert result.status == BalanceStatus.PARTIAL
        assert result.balance == Decimal("600.00")

    def test_overdue_wins_over_partial(self):
        """Test scaduta con incasso parziale → overdue."""
        result = evaluate_balance(make_invoice(), [pay("400")], today=date(2025, 4, 1))

        assert result.status == BalanceStatus.OVERDUE

    def test_due_date_itself_not_overdue(self):
        """Test il giorno di scadenza non è ancora overdue."""
        result = evaluate_balance(make_invoice(), [], today=date(2025, 3, 31))

        assert result.status == BalanceStatus.OPEN

    @pytest.mark.parametrize("amounts", [["1000"], ["600", "400"], ["1200"]])
    def test_paid(self, amounts):
        """Test saldo <= 0 → paid anche se scaduta."""
        result = evaluate_balance(
            make_invoice(), [pay(a) for a in amounts], today=date(2025, 6, 1)
        )

        assert result.status == BalanceStatus.PAID

    def test_other_invoice_collections_ignored(self):
        """Test incassi di altre fatture ignorati."""
        result = evaluate_balance(make_invoice(), [pay("1000", "inv-2")], today=date(2025, 3, 10))

        assert result.status == BalanceStatus.OPEN

    def test_evaluator_fixed_date(self):
        """Test valutatore con data di riferimento fissa."""
        evaluator = InvoiceBalanceEvaluator(today=date(2025, 5, 1))

        assert evaluator.evaluate(make_invoice(), []).status == BalanceStatus.OVERDUE


# ============================================================
# Tests for project summary
# ============================================================


class TestProjectSummary:
    """Project-level totals."""

    def test_overpayment_not_counted_as_negative(self):
        """Test incasso eccedente non riduce il residuo degli altri."""
        invoices = [make_invoice("inv-1", "1000.00"), make_invoice("inv-2", "500.00")]
        collections = [pay("1200", "inv-1"), pay("100", "inv-2")]

        summary = summarize_invoices("PRJ-001", invoices, collections, today=date(2025, 3, 10))

        assert summary.invoices_count == 2
        assert summary.total_invoiced == Decimal("1500.00")
        assert summary.total_outstanding == Decimal("400.00")

    @pytest.mark.asyncio
    async def test_summary_from_hosted_service(self, hosted, hosted_client):
        """Test lettura fatture e incassi dal servizio remoto."""
        invoice = make_invoice().model_dump(mode="json")
        hosted.on("GET", "/accounting/invoices", {"success": True, "data": [invoice]})
        hosted.on("GET", "/accounting/collections", {
            "success": True,
            "data": [{"invoice_id": "inv-1", "amount": 250, "date": "2025-03-05"}],
        })

        summary = await get_project_summary(hosted_client, "PRJ-001", today=date(2025, 3, 10))

        assert summary.total_outstanding == Decimal("750")
        assert summary.balances[0].status == BalanceStatus.PARTIAL
