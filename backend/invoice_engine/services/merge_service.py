"""
Service per l'Unione Voci Persistite / Quotazione
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Produce la lista di voci fatturabili di un progetto:
- le voci persistite restano, e se ancora unbilled riflettono
  i valori correnti della riga di quotazione da cui derivano
- le righe di quotazione senza voce persistita diventano voci
  virtuali con id 'virtual-<id riga>'

Va rieseguita dopo ogni tentativo di emissione: una voce già promossa
compare come reale e non viene duplicata come virtuale.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from invoice_engine.schemas.billing import (
    VIRTUAL_ID_PREFIX,
    ChargeRecord,
    ChargeStatus,
    Quotation,
)

DEFAULT_SERVICE_TYPE = "General"


def merge_billing_items(
    items: Iterable[ChargeRecord],
    quotation: Optional[Quotation] = None,
) -> list[ChargeRecord]:
    """
    Unisce voci persistite e righe di quotazione.

    Args:
        items: Voci persistite restituite dal servizio remoto
        quotation: Quotazione accettata del progetto (opzionale)

    Returns:
        list[ChargeRecord]: voci persistite (nell'ordine ricevuto)
        seguite dalle voci virtuali (nell'ordine della quotazione)
    """
    combined = list(items)
    if quotation is None:
        return combined

    real_index = {
        item.source_quotation_item_id: index
        for index, item in enumerate(combined)
        if item.source_quotation_item_id
    }
    created_at = quotation.created_at or datetime.now(timezone.utc)

    for category in quotation.selling_price:
        for line in category.line_items:
            index = real_index.get(line.id)

            if index is not None:
                existing = combined[index]
                # Le voci già fatturate non vengono mai toccate
                if existing.status == ChargeStatus.UNBILLED:
                    combined[index] = existing.model_copy(update={
                        "description": line.description,
                        "service_type": line.service or existing.service_type or DEFAULT_SERVICE_TYPE,
                        "amount": line.amount,
                        "currency": line.currency.upper(),
                        "quotation_category": category.category_name,
                    })
                continue

            combined.append(
                ChargeRecord(
                    id=f"{VIRTUAL_ID_PREFIX}{line.id}",
                    description=line.description,
                    amount=line.amount,
                    currency=line.currency,
                    service_type=line.service or DEFAULT_SERVICE_TYPE,
                    status=ChargeStatus.UNBILLED,
                    created_at=created_at,
                    source_quotation_item_id=line.id,
                    quotation_category=category.category_name,
                    is_virtual=True,
                )
            )

    return combined
