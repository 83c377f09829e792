"""
Service per la Promozione delle Voci Virtuali
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Prima dell'emissione le voci virtuali selezionate vengono persistite
con una sola chiamata batch; gli id virtuali vengono poi riscritti
sugli id reali dei record restituiti.

Algoritmo di corrispondenza, in due passaggi:
1. stesso source_quotation_item_id, per tutte le voci virtuali
2. fallback su (description, amount) per le voci rimaste, senza
   toccare i record di un'altra riga di quotazione selezionata
Ogni record persistito può essere assegnato una sola volta.
"""

import logging
from typing import Iterable, Mapping, Optional

from pydantic import BaseModel, Field

from invoice_engine.clients.hosted_service import HostedServiceClient
from invoice_engine.core.exceptions import (
    InconsistentMapping,
    NotFoundError,
    PromotionFailure,
    ServiceUnavailableError,
)
from invoice_engine.schemas.billing import VIRTUAL_ID_PREFIX, ChargeRecord
from invoice_engine.schemas.remote import MalformedResponse

# Logger per questo modulo
logger = logging.getLogger(__name__)


def is_virtual_id(charge_id: str) -> bool:
    """True per gli id locali derivati dalla quotazione."""
    return charge_id.startswith(VIRTUAL_ID_PREFIX)


class PromotionResult(BaseModel):
    """Esito della promozione: mappa virtuale → reale e id riscritti."""

    id_map: dict[str, str] = Field(default_factory=dict)
    billing_item_ids: list[str] = Field(default_factory=list)
    promoted_count: int = 0


def match_promoted_items(
    virtual_items: Iterable[ChargeRecord],
    saved_items: Iterable[ChargeRecord],
) -> tuple[dict[str, str], list[str]]:
    """
    Abbina le voci virtuali ai record persistiti.

    Returns:
        (id_map, id virtuali rimasti senza corrispondenza)
    """
    virtual_items = list(virtual_items)
    available = list(saved_items)
    id_map: dict[str, str] = {}

    # Primo passaggio: source_quotation_item_id per tutte le voci
    for v_item in virtual_items:
        if not v_item.source_quotation_item_id:
            continue
        match = next(
            (s for s in available
             if s.source_quotation_item_id == v_item.source_quotation_item_id),
            None,
        )
        if match is not None:
            available.remove(match)
            id_map[v_item.id] = match.id

    # Secondo passaggio: (description, amount), esclusi i record che
    # appartengono alla riga di quotazione di un'altra voce selezionata
    reserved_sources = {
        v.source_quotation_item_id for v in virtual_items if v.source_quotation_item_id
    }
    unmatched: list[str] = []
    for v_item in virtual_items:
        if v_item.id in id_map:
            continue
        match = next(
            (s for s in available
             if s.description == v_item.description
             and s.amount == v_item.amount
             and (not s.source_quotation_item_id
                  or s.source_quotation_item_id == v_item.source_quotation_item_id
                  or s.source_quotation_item_id not in reserved_sources)),
            None,
        )
        if match is None:
            unmatched.append(v_item.id)
            continue

        available.remove(match)
        id_map[v_item.id] = match.id

    return id_map, unmatched


class VirtualItemPromoter:
    """Persistenza batch delle voci virtuali selezionate."""

    def __init__(self, client: HostedServiceClient) -> None:
        self.client = client

    async def promote(
        self,
        project_id: str,
        charges: Iterable[ChargeRecord],
        selected_ids: list[str],
        known_id_map: Optional[Mapping[str, str]] = None,
    ) -> PromotionResult:
        """
        Promuove le voci virtuali selezionate e riscrive la selezione.

        Steps:
        1. Riscrive gli id già promossi da un tentativo precedente
        2. Se restano id virtuali, li persiste con una chiamata batch
        3. Abbina i record restituiti alle voci virtuali
        4. Riscrive tutti gli id selezionati (identità per quelli reali)

        Args:
            project_id: Progetto di appartenenza
            charges: Voci disponibili (reali + virtuali)
            selected_ids: Id selezionati dall'operatore
            known_id_map: Mappa registrata da un tentativo precedente

        Returns:
            PromotionResult: mappa completa e id da fatturare

        Raises:
            NotFoundError: id virtuale selezionato assente dalle voci
            PromotionFailure: chiamata batch fallita o risposta non valida
            InconsistentMapping: voce virtuale senza record corrispondente
        """
        id_map = dict(known_id_map or {})
        by_id = {c.id: c for c in charges}

        pending_ids = [
            cid for cid in selected_ids
            if cid not in id_map and (is_virtual_id(cid) or (cid in by_id and by_id[cid].is_virtual))
        ]

        promoted_count = 0
        if pending_ids:
            missing = [cid for cid in pending_ids if cid not in by_id]
            if missing:
                raise NotFoundError(
                    f"Voci virtuali non trovate: {', '.join(missing)}",
                    extra={"missing_ids": missing},
                )
            virtual_items = [by_id[cid] for cid in pending_ids]
            new_map = await self._promote_batch(project_id, virtual_items)
            id_map.update(new_map)
            promoted_count = len(new_map)

        billing_item_ids = [id_map.get(cid, cid) for cid in selected_ids]
        return PromotionResult(
            id_map=id_map,
            billing_item_ids=billing_item_ids,
            promoted_count=promoted_count,
        )

    async def _promote_batch(
        self,
        project_id: str,
        virtual_items: list[ChargeRecord],
    ) -> dict[str, str]:
        logger.info(f"Promozione di {len(virtual_items)} voci virtuali per il progetto {project_id}")

        payload = [item.to_promotion_payload(project_id) for item in virtual_items]
        try:
            response = await self.client.batch_promote(project_id, payload)
        except ServiceUnavailableError as e:
            raise PromotionFailure(
                f"Impossibile finalizzare le voci virtuali: {e.detail}"
            ) from e
        except MalformedResponse as e:
            logger.error(f"Risposta di promozione non valida: {e}")
            raise PromotionFailure(
                f"Risposta di promozione non valida: {e}",
                error_code="PROMOTION_MALFORMED_RESPONSE",
            ) from e

        if not response.success:
            logger.warning(f"Promozione rifiutata dal servizio remoto: {response.error}")
            raise PromotionFailure(
                response.error or "Impossibile finalizzare le voci virtuali"
            )

        id_map, unmatched = match_promoted_items(virtual_items, response.items)
        if unmatched:
            logger.error(
                f"Voci virtuali senza corrispondenza dopo la promozione: {unmatched}"
            )
            raise InconsistentMapping(
                f"{len(unmatched)} voci virtuali non trovano corrispondenza tra i record persistiti",
                extra={"unmatched_ids": unmatched, "id_map": id_map},
            )

        logger.info(f"Promozione completata: {id_map}")
        return id_map
