"""
Client HTTP per il Servizio Remoto di Persistenza
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Il servizio remoto (funzioni ospitate) possiede voci di addebito,
fatture, incassi e piano dei conti. Ogni risposta è un envelope JSON
{success, data | items, error}: qui viene tradotto una sola volta in
modelli tipizzati.

Errori:
- errore di trasporto / timeout / risposta non JSON → ServiceUnavailableError
- success: false su letture → ServiceUnavailableError con il messaggio remoto
- success: false su promozione/creazione → risposta con campo error
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from invoice_engine.core.config import settings
from invoice_engine.core.exceptions import ServiceUnavailableError
from invoice_engine.schemas.billing import Account, ChargeRecord, ChargeRecordCreate
from invoice_engine.schemas.invoice import Collection, Invoice
from invoice_engine.schemas.remote import (
    BatchPromoteRequest,
    BatchPromoteResponse,
    InvoiceCreationPayload,
    InvoiceCreationResponse,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)


class HostedServiceClient:
    """
    Client async verso il servizio remoto.

    Usage:
        async with HostedServiceClient() as client:
            items = await client.list_billing_items("PRJ-001")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            base_url: URL base delle funzioni (default: settings)
            api_key: Token bearer (default: settings)
            timeout: Timeout in secondi (default: settings)
            transport: Trasporto httpx alternativo (usato nei test)
        """
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.service_base_url,
            headers={"Authorization": f"Bearer {api_key or settings.service_api_key}"},
            timeout=timeout if timeout is not None else settings.service_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "HostedServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------
    # Trasporto
    # ------------------------------------------------------------
    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Esegue la richiesta e restituisce il corpo JSON.

        Una risposta HTTP di errore con envelope valido viene restituita
        al chiamante, che ne legge il campo error.

        Raises:
            ServiceUnavailableError: trasporto fallito o corpo non JSON
        """
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Servizio remoto non raggiungibile ({method} {path}): {e}")
            raise ServiceUnavailableError(
                f"Servizio remoto non raggiungibile: {type(e).__name__}"
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            logger.error(
                f"Risposta non JSON dal servizio remoto ({method} {path}): HTTP {response.status_code}"
            )
            raise ServiceUnavailableError(
                f"Risposta non valida dal servizio remoto (HTTP {response.status_code})"
            ) from e

        if response.is_error and not (isinstance(body, dict) and "success" in body):
            logger.error(f"Errore HTTP {response.status_code} dal servizio remoto ({method} {path})")
            raise ServiceUnavailableError(
                f"Errore dal servizio remoto (HTTP {response.status_code})"
            )

        return body

    async def _get_list(self, path: str, params: Optional[dict] = None) -> list:
        """Lettura di una collezione: {success, data: [...]}."""
        body = await self._request("GET", path, params=params)
        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            raise ServiceUnavailableError(
                f"Lettura di {path} fallita: {error or 'risposta non riconosciuta'}"
            )
        data = body.get("data")
        return data if isinstance(data, list) else []

    # ------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------
    async def list_billing_items(self, project_id: str) -> list[ChargeRecord]:
        """Voci di addebito persistite del progetto."""
        rows = await self._get_list(
            "/accounting/billing-items", params={"project_number": project_id}
        )
        return self._parse_rows(ChargeRecord, rows, "voce di addebito")

    async def list_accounts(self) -> list[Account]:
        """Piano dei conti completo."""
        rows = await self._get_list("/accounts")
        return self._parse_rows(Account, rows, "conto")

    async def list_invoices(self, project_id: str) -> list[Invoice]:
        """Fatture emesse del progetto."""
        rows = await self._get_list(
            "/accounting/invoices", params={"projectNumber": project_id}
        )
        return self._parse_rows(Invoice, rows, "fattura")

    async def list_collections(self, project_id: str) -> list[Collection]:
        """Incassi registrati sulle fatture del progetto."""
        rows = await self._get_list(
            "/accounting/collections", params={"project_number": project_id}
        )
        return self._parse_rows(Collection, rows, "incasso")

    @staticmethod
    def _parse_rows(model, rows: list, label: str) -> list:
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as e:
            logger.error(f"Record {label} non valido dal servizio remoto: {e}")
            raise ServiceUnavailableError(
                f"Il servizio remoto ha restituito un record {label} non valido"
            ) from e

    # ------------------------------------------------------------
    # Scritture
    # ------------------------------------------------------------
    async def batch_promote(
        self,
        project_id: str,
        items: list[ChargeRecordCreate],
    ) -> BatchPromoteResponse:
        """
        Persiste in blocco le voci virtuali.

        Raises:
            ServiceUnavailableError: trasporto fallito
            MalformedResponse: envelope non riconosciuto
        """
        request = BatchPromoteRequest(project_id=project_id, items=items)
        body = await self._request(
            "POST",
            "/accounting/billings/batch",
            json=request.model_dump(mode="json", exclude_none=True),
        )
        return BatchPromoteResponse.from_envelope(body)

    async def create_invoice(self, payload: InvoiceCreationPayload) -> InvoiceCreationResponse:
        """
        Crea la fattura; il servizio marca le voci come billed e registra
        la scrittura contabile quando riceve il conto ricavi.

        Raises:
            ServiceUnavailableError: trasporto fallito
            MalformedResponse: envelope non riconosciuto
        """
        body_json = payload.model_dump(mode="json")
        # Senza conto ricavi la chiave non viene inviata: niente scrittura contabile
        if payload.revenue_account_id is None:
            body_json.pop("revenue_account_id")
        body = await self._request("POST", "/accounting/invoices", json=body_json)
        return InvoiceCreationResponse.from_envelope(body)
