"""
Service per il Saldo delle Fatture
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Derivazione in sola lettura: saldo e stato vengono ricalcolati ad ogni
lettura perché gli incassi arrivano indipendentemente dalla fattura.
La fattura non viene mai modificata.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from invoice_engine.clients.hosted_service import HostedServiceClient
from invoice_engine.schemas.invoice import (
    BalanceEvaluation,
    BalanceStatus,
    Collection,
    Invoice,
    ProjectInvoiceSummary,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)


def evaluate_balance(
    invoice: Invoice,
    collections: Iterable[Collection],
    today: Optional[date] = None,
) -> BalanceEvaluation:
    """
    Calcola saldo residuo e stato di una fattura.

    Regole (in ordine):
    - paid: saldo <= 0
    - overdue: saldo > 0 e oggi > due_date
    - partial: 0 < saldo < total_amount
    - open: altrimenti

    Args:
        invoice: Fattura emessa
        collections: Incassi (vengono considerati solo quelli della fattura)
        today: Data di riferimento (default: oggi)

    Returns:
        BalanceEvaluation: incassato, saldo e stato
    """
    today = today or date.today()
    paid_amount = sum(
        (c.amount for c in collections if c.invoice_id == invoice.id),
        Decimal("0.00"),
    )
    balance = invoice.total_amount - paid_amount

    if balance <= 0:
        status = BalanceStatus.PAID
    elif today > invoice.due_date:
        status = BalanceStatus.OVERDUE
    elif balance < invoice.total_amount:
        status = BalanceStatus.PARTIAL
    else:
        status = BalanceStatus.OPEN

    return BalanceEvaluation(
        invoice_id=invoice.id,
        paid_amount=paid_amount,
        balance=balance,
        status=status,
    )


def summarize_invoices(
    project_id: str,
    invoices: list[Invoice],
    collections: list[Collection],
    today: Optional[date] = None,
) -> ProjectInvoiceSummary:
    """Totali fatturati e residui di un progetto."""
    balances = [evaluate_balance(inv, collections, today) for inv in invoices]
    return ProjectInvoiceSummary(
        project_id=project_id,
        invoices_count=len(invoices),
        total_invoiced=sum((inv.total_amount for inv in invoices), Decimal("0.00")),
        total_outstanding=sum(
            (max(b.balance, Decimal("0.00")) for b in balances), Decimal("0.00")
        ),
        balances=balances,
    )


async def get_project_summary(
    client: HostedServiceClient,
    project_id: str,
    today: Optional[date] = None,
) -> ProjectInvoiceSummary:
    """Legge fatture e incassi del progetto e ne calcola il riepilogo."""
    invoices = await client.list_invoices(project_id)
    collections = await client.list_collections(project_id)
    logger.debug(
        f"Riepilogo progetto {project_id}: {len(invoices)} fatture, {len(collections)} incassi"
    )
    return summarize_invoices(project_id, invoices, collections, today)


class InvoiceBalanceEvaluator:
    """Valutatore del saldo con data di riferimento fissabile (test, report storici)."""

    def __init__(self, today: Optional[date] = None) -> None:
        self.today = today

    def evaluate(self, invoice: Invoice, collections: Iterable[Collection]) -> BalanceEvaluation:
        return evaluate_balance(invoice, collections, self.today)
