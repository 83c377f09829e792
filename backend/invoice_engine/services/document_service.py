"""
Service per la generazione del documento fattura con Jinja2.
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Produce l'HTML stampabile di una bozza o di una fattura emessa.
La ristampa può cambiare solo note e metadata: righe e totali
vengono presi così come sono, mai ricalcolati.
"""

import logging
import os
from datetime import date
from decimal import Decimal
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from invoice_engine.core.config import settings
from invoice_engine.schemas.invoice import Invoice, InvoiceMetadata, InvoiceStatus

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Path alla cartella templates
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TEMPLATES_DIR = os.path.join(BASE_DIR, "templates")


def format_money(value: Decimal, currency: Optional[str] = None) -> str:
    """1234.5 → '1,234.50' (con prefisso valuta se indicata)."""
    text = f"{Decimal(value):,.2f}"
    return f"{currency} {text}" if currency else text


def format_date(value: Optional[date]) -> str:
    if value is None:
        return "-"
    return value.strftime("%b %d, %Y")


class InvoiceDocumentRenderer:
    """
    Genera l'HTML della fattura da template Jinja2.

    Il chiamante passa la fattura già calcolata (bozza o emessa).
    """

    def __init__(self, templates_dir: str = TEMPLATES_DIR) -> None:
        self.env = Environment(
            loader=FileSystemLoader(templates_dir),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["money"] = format_money
        self.env.filters["date"] = format_date

    def render(
        self,
        invoice: Invoice,
        notes: Optional[str] = None,
        metadata: Optional[InvoiceMetadata] = None,
    ) -> str:
        """
        Genera l'HTML di una fattura.

        Args:
            invoice: Fattura (bozza o emessa)
            notes: Note aggiornate per la ristampa
            metadata: Metadata aggiornati per la ristampa

        Returns:
            str: documento HTML completo
        """
        document = invoice.with_reprint_fields(notes=notes, metadata=metadata)
        options = document.metadata.display_options

        # Riepilogo IVA per regime
        tax_summary = {}
        for line in document.line_items:
            entry = tax_summary.setdefault(
                line.tax_type.value,
                {"tax_type": line.tax_type.value, "taxable": Decimal("0.00"), "tax": Decimal("0.00")},
            )
            entry["taxable"] += line.amount
            entry["tax"] += line.tax_amount

        context = {
            # Dati azienda (da settings)
            "company_name": settings.company_name,
            "company_address": settings.company_address,
            "company_tin": settings.company_tin,
            "bank_details": settings.bank_details,

            # Fattura
            "invoice": document,
            "is_draft": document.status == InvoiceStatus.DRAFT,
            "tax_summary": list(tax_summary.values()),
            "zone_a": document.metadata.zone_a_fields,
            "signatories": document.metadata.signatories,

            # Sezioni opzionali
            "show_bank_details": options.show_bank_details and bool(settings.bank_details),
            "show_notes": options.show_notes and bool(document.notes),
            "show_tax_summary": options.show_tax_summary,
        }

        logger.debug(f"Rendering documento fattura {document.invoice_number}")
        template = self.env.get_template("invoice_template.html")
        return template.render(context)
