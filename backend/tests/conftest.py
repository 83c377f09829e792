"""
Pytest configuration and fixtures for the invoice engine tests.

The hosted service is replaced by an httpx.MockTransport; the attempt
journal runs on a throwaway sqlite database per test.
"""

import json
import os
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional, Union
from unittest.mock import AsyncMock, MagicMock

# Configurazione di test, prima di importare invoice_engine
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SERVICE_BASE_URL", "http://hosted.test")
os.environ.setdefault("SERVICE_API_KEY", "test-key")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from invoice_engine.clients.hosted_service import HostedServiceClient
from invoice_engine.models import Base
from invoice_engine.schemas.billing import ChargeRecord, ChargeStatus, LineOverride, TaxType
from invoice_engine.schemas.invoice import DraftInvoiceInput, InvoiceHeader


# ============================================================
# Fixtures per ChargeRecord
# ============================================================


def make_charge(
    charge_id: str = "bill-1",
    amount: Union[str, Decimal] = "1000.00",
    currency: str = "PHP",
    status: ChargeStatus = ChargeStatus.UNBILLED,
    description: Optional[str] = None,
    source_quotation_item_id: Optional[str] = None,
    is_virtual: Optional[bool] = None,
) -> ChargeRecord:
    """Crea una voce di addebito con valori di default sensati."""
    if is_virtual is None:
        is_virtual = charge_id.startswith("virtual-")
    return ChargeRecord(
        id=charge_id,
        description=description or f"Charge {charge_id}",
        amount=Decimal(str(amount)),
        currency=currency,
        service_type="Forwarding",
        status=status,
        source_quotation_item_id=source_quotation_item_id,
        is_virtual=is_virtual,
    )


def make_draft_input(
    charges: list[ChargeRecord],
    overrides: Optional[dict[str, LineOverride]] = None,
    currency: str = "PHP",
    exchange_rate: Optional[Decimal] = None,
    invoice_date: date = date(2025, 3, 1),
    **header_fields: Any,
) -> DraftInvoiceInput:
    """Ingressi della bozza con data fattura fissa."""
    if overrides is None:
        overrides = {c.id: LineOverride() for c in charges}
    return DraftInvoiceInput(
        selected_charges=tuple(charges),
        overrides=overrides,
        currency=currency,
        exchange_rate=exchange_rate,
        header=InvoiceHeader(invoice_date=invoice_date, **header_fields),
    )


@pytest.fixture
def charge_factory():
    return make_charge


@pytest.fixture
def draft_input_factory():
    return make_draft_input


@pytest.fixture
def php_charge():
    return make_charge("bill-1", "1000.00", "PHP")


@pytest.fixture
def usd_charge():
    return make_charge("bill-2", "100.00", "USD")


@pytest.fixture
def vat_override():
    return LineOverride(remarks="", tax_type=TaxType.VAT)


# ============================================================
# Fake del servizio remoto (httpx.MockTransport)
# ============================================================


Responder = Union[dict, list, Callable[[httpx.Request], httpx.Response], Exception]


class FakeHostedService:
    """
    Servizio remoto finto.

    Ogni rotta (metodo, path) ha una coda di risposte: l'ultima
    resta valida per tutte le chiamate successive.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], list[tuple[Responder, int]]] = {}

    def on(self, method: str, path: str, body: Responder, status_code: int = 200) -> "FakeHostedService":
        self.routes.setdefault((method.upper(), path), []).append((body, status_code))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"success": False, "error": "Not found"})

        body, status_code = queue[0] if len(queue) == 1 else queue.pop(0)
        if isinstance(body, Exception):
            raise body
        if callable(body):
            return body(request)
        return httpx.Response(status_code, json=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def json_of(self, method: str, path: str, index: int = -1) -> Any:
        return json.loads(self.calls(method, path)[index].content)

    def client(self) -> HostedServiceClient:
        return HostedServiceClient(
            base_url="http://hosted.test",
            api_key="test-key",
            timeout=5.0,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def hosted():
    return FakeHostedService()


@pytest_asyncio.fixture
async def hosted_client(hosted):
    client = hosted.client()
    yield client
    await client.aclose()


@pytest.fixture
def mock_hosted_client():
    """Client remoto completamente mockato (AsyncMock)."""
    client = MagicMock(spec=HostedServiceClient)
    client.batch_promote = AsyncMock()
    client.create_invoice = AsyncMock()
    client.list_accounts = AsyncMock()
    client.list_billing_items = AsyncMock()
    client.list_invoices = AsyncMock()
    client.list_collections = AsyncMock()
    return client


# ============================================================
# Fixtures per il journal (sqlite su file temporaneo)
# ============================================================


def journal_engine(path) -> AsyncEngine:
    """Engine sqlite senza pool: ogni sessione apre la propria connessione."""
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


async def create_journal_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest_asyncio.fixture
async def journal_sessionmaker(tmp_path):
    """Session factory su un database sqlite nuovo per ogni test."""
    engine = journal_engine(tmp_path / "journal.db")
    await create_journal_tables(engine)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(journal_sessionmaker):
    async with journal_sessionmaker() as session:
        yield session
