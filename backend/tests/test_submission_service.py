"""
Tests for the two-phase invoice submission and the attempt journal.

The hosted service is faked with httpx.MockTransport; the journal
runs on a temporary sqlite database.
"""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from invoice_engine.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    InconsistentMapping,
    NotFoundError,
    PromotionFailure,
    SubmissionFailure,
)
from invoice_engine.models import AttemptState
from invoice_engine.schemas.billing import LineOverride, TaxType
from invoice_engine.schemas.invoice import (
    CreationOutcome,
    InvoiceHeader,
    InvoiceMetadata,
    InvoiceStatus,
    InvoiceSubmitRequest,
    Signatories,
    Signatory,
)
from invoice_engine.services.submission_service import InvoiceSubmitter


BATCH_PATH = "/accounting/billings/batch"
INVOICES_PATH = "/accounting/invoices"


def created(invoice_number="INV-0001", journal_entry_id=None):
    return {
        "success": True,
        "data": {"id": "inv-1", "invoice_number": invoice_number, "journal_entry_id": journal_entry_id},
    }


def promoted(*items):
    return {"success": True, "data": {"items": list(items)}}


def saved(charge_id, description, amount, source):
    return {
        "id": charge_id,
        "description": description,
        "amount": amount,
        "currency": "PHP",
        "status": "unbilled",
        "source_quotation_item_id": source,
    }


@pytest.fixture
def mixed_charges(charge_factory):
    """Una voce reale e una virtuale derivata dalla quotazione."""
    return [
        charge_factory("bill-1", "1000.00"),
        charge_factory("virtual-q1", "500.00", description="Trucking", source_quotation_item_id="q1"),
    ]


@pytest.fixture
def submit_request(mixed_charges):
    def _make(selected_ids=("bill-1", "virtual-q1"), **fields):
        values = {
            "project_id": "PRJ-001",
            "charges": mixed_charges,
            "selected_ids": list(selected_ids),
            "currency": "PHP",
            "header": InvoiceHeader(
                invoice_date=date(2025, 3, 1),
                customer_name="Acme Imports",
                project_number="PRJ-001",
            ),
        }
        values.update(fields)
        return InvoiceSubmitRequest(**values)
    return _make


# ============================================================
# Tests for successful submission
# ============================================================


class TestSubmitSuccess:
    """Posting with and without a ledger entry."""

    @pytest.mark.asyncio
    async def test_posted_with_ledger_entry(self, hosted, hosted_client, db_session, submit_request):
        """Test promozione + creazione con scrittura contabile."""
        hosted.on("POST", BATCH_PATH, promoted(saved("bill-9", "Trucking", 500, "q1")))
        hosted.on("POST", INVOICES_PATH, created("INV-0001", "je-77"))

        result = await InvoiceSubmitter(hosted_client).submit(
            db_session,
            submit_request(
                revenue_account_id="acc-4000",
                overrides={"virtual-q1": LineOverride(tax_type=TaxType.VAT)},
            ),
        )

        assert result.outcome == CreationOutcome.POSTED_WITH_LEDGER_ENTRY
        assert result.posted_to_ledger is True
        assert result.billed_item_ids == ["bill-1", "bill-9"]
        assert result.invoice.status == InvoiceStatus.POSTED
        assert result.invoice.invoice_number == "INV-0001"
        assert result.invoice.journal_entry_id == "je-77"
        assert result.invoice.source_ids == ["bill-1", "bill-9"]
        assert result.invoice.total_amount == Decimal("1560.00")

        attempt = await InvoiceSubmitter.get_attempt(db_session, result.attempt_id)
        assert attempt.state == AttemptState.SUBMITTED.value
        assert attempt.id_map == {"virtual-q1": "bill-9"}
        assert attempt.journal_entry_id == "je-77"

    @pytest.mark.asyncio
    async def test_payload_uses_real_ids(self, hosted, hosted_client, db_session, submit_request):
        """Test il payload di creazione non contiene mai id virtuali."""
        hosted.on("POST", BATCH_PATH, promoted(saved("bill-9", "Trucking", 500, "q1")))
        hosted.on("POST", INVOICES_PATH, created())
        metadata = InvoiceMetadata(
            signatories=Signatories(prepared_by=Signatory(name="Maria Santos", title="Billing Clerk"))
        )
        request = submit_request(
            revenue_account_id="acc-4000",
            header=InvoiceHeader(invoice_date=date(2025, 3, 1), metadata=metadata),
        )

        await InvoiceSubmitter(hosted_client).submit(db_session, request)

        body = hosted.json_of("POST", INVOICES_PATH)
        assert body["billing_item_ids"] == ["bill-1", "bill-9"]
        assert [line["source_id"] for line in body["line_items"]] == ["bill-1", "bill-9"]
        assert body["user_name"] == "Maria Santos"
        assert body["project_number"] == "PRJ-001"
        assert body["revenue_account_id"] == "acc-4000"
        assert body["total_amount"] == 1500.0
        assert body["due_date"] == "2025-03-31"

    @pytest.mark.asyncio
    async def test_created_without_ledger_entry(self, hosted, hosted_client, db_session, submit_request):
        """Test nessun conto ricavi → fattura creata senza scrittura."""
        hosted.on("POST", INVOICES_PATH, created("INV-0002"))

        result = await InvoiceSubmitter(hosted_client).submit(
            db_session, submit_request(selected_ids=["bill-1"])
        )

        assert result.outcome == CreationOutcome.CREATED_WITHOUT_LEDGER_ENTRY
        assert result.posted_to_ledger is False
        assert "nessun conto ricavi" in result.message
        assert hosted.calls("POST", BATCH_PATH) == []
        assert "revenue_account_id" not in hosted.json_of("POST", INVOICES_PATH)

    @pytest.mark.asyncio
    async def test_account_given_but_no_entry_returned(self, hosted, hosted_client, db_session, submit_request):
        """Test conto indicato ma scrittura assente → esito senza scrittura."""
        hosted.on("POST", INVOICES_PATH, created("INV-0003", None))

        result = await InvoiceSubmitter(hosted_client).submit(
            db_session, submit_request(selected_ids=["bill-1"], revenue_account_id="acc-4000")
        )

        assert result.outcome == CreationOutcome.CREATED_WITHOUT_LEDGER_ENTRY
        assert "non ha registrato" in result.message


# ============================================================
# Tests for validation before any network call
# ============================================================


class TestSubmitValidation:
    """Local validation failures never reach the hosted service."""

    @pytest.mark.asyncio
    async def test_empty_selection(self, hosted, hosted_client, db_session, submit_request):
        """Test selezione vuota → errore senza richieste."""
        with pytest.raises(BusinessValidationError) as exc_info:
            await InvoiceSubmitter(hosted_client).submit(db_session, submit_request(selected_ids=[]))

        assert exc_info.value.error_code == "NO_CHARGES_SELECTED"
        assert hosted.requests == []

    @pytest.mark.asyncio
    async def test_missing_rate(self, hosted, hosted_client, db_session, submit_request, usd_charge):
        """Test voce estera senza tasso → errore senza richieste."""
        with pytest.raises(BusinessValidationError) as exc_info:
            await InvoiceSubmitter(hosted_client).submit(
                db_session, submit_request(charges=[usd_charge], selected_ids=["bill-2"])
            )

        assert exc_info.value.error_code == "EXCHANGE_RATE_REQUIRED"
        assert hosted.requests == []

    @pytest.mark.asyncio
    async def test_unknown_attempt(self, hosted_client, db_session, submit_request):
        """Test attempt_id inesistente → NotFoundError."""
        with pytest.raises(NotFoundError):
            await InvoiceSubmitter(hosted_client).submit(
                db_session, submit_request(attempt_id="not-a-uuid")
            )


# ============================================================
# Tests for failures and retries
# ============================================================


class TestSubmitFailures:
    """Failed phases are recorded and retries resume correctly."""

    @pytest.mark.asyncio
    async def test_promotion_network_failure_then_retry(self, hosted, hosted_client, db_session, submit_request):
        """Test errore di rete in promozione, poi nuovo tentativo riuscito."""
        hosted.on("POST", BATCH_PATH, httpx.ConnectError("connection refused"))
        hosted.on("POST", BATCH_PATH, promoted(saved("bill-9", "Trucking", 500, "q1")))
        hosted.on("POST", INVOICES_PATH, created())
        submitter = InvoiceSubmitter(hosted_client)

        with pytest.raises(PromotionFailure) as exc_info:
            await submitter.submit(db_session, submit_request())

        assert hosted.calls("POST", INVOICES_PATH) == []
        failed = await submitter.get_attempt(db_session, exc_info.value.extra["attempt_id"])
        assert failed.state == AttemptState.FAILED.value
        assert failed.error_code == "PROMOTION_FAILED"

        result = await submitter.submit(db_session, submit_request())

        assert result.billed_item_ids == ["bill-1", "bill-9"]
        assert len(hosted.calls("POST", BATCH_PATH)) == 2

    @pytest.mark.asyncio
    async def test_creation_failure_then_resume(self, hosted, hosted_client, db_session, submit_request):
        """Test fase 2 fallita: il retry con attempt_id non ripromuove."""
        hosted.on("POST", BATCH_PATH, promoted(saved("bill-9", "Trucking", 500, "q1")))
        hosted.on("POST", INVOICES_PATH, {"success": False, "error": "numbering locked"}, status_code=500)
        hosted.on("POST", INVOICES_PATH, created("INV-0005", "je-5"))
        submitter = InvoiceSubmitter(hosted_client)

        with pytest.raises(SubmissionFailure, match="numbering locked") as exc_info:
            await submitter.submit(db_session, submit_request(revenue_account_id="acc-4000"))

        attempt_id = exc_info.value.extra["attempt_id"]
        failed = await submitter.get_attempt(db_session, attempt_id)
        assert failed.state == AttemptState.FAILED.value
        assert failed.id_map == {"virtual-q1": "bill-9"}

        result = await submitter.submit(
            db_session,
            submit_request(revenue_account_id="acc-4000", attempt_id=attempt_id),
        )

        assert result.attempt_id == attempt_id
        assert result.invoice.invoice_number == "INV-0005"
        assert len(hosted.calls("POST", BATCH_PATH)) == 1
        assert hosted.json_of("POST", INVOICES_PATH)["billing_item_ids"] == ["bill-1", "bill-9"]

    @pytest.mark.asyncio
    async def test_resubmit_completed_attempt(self, hosted, hosted_client, db_session, submit_request):
        """Test reinvio di un tentativo già emesso → ConflictError."""
        hosted.on("POST", INVOICES_PATH, created("INV-0006"))
        submitter = InvoiceSubmitter(hosted_client)
        result = await submitter.submit(db_session, submit_request(selected_ids=["bill-1"]))

        with pytest.raises(ConflictError) as exc_info:
            await submitter.submit(
                db_session, submit_request(selected_ids=["bill-1"], attempt_id=result.attempt_id)
            )

        assert exc_info.value.error_code == "ATTEMPT_ALREADY_SUBMITTED"
        assert len(hosted.calls("POST", INVOICES_PATH)) == 1

    @pytest.mark.asyncio
    async def test_attempt_of_other_project(self, hosted, hosted_client, db_session, submit_request):
        """Test tentativo di un altro progetto → ConflictError."""
        hosted.on("POST", INVOICES_PATH, httpx.ReadTimeout("timeout"))
        submitter = InvoiceSubmitter(hosted_client)

        with pytest.raises(SubmissionFailure) as exc_info:
            await submitter.submit(db_session, submit_request(selected_ids=["bill-1"]))

        with pytest.raises(ConflictError) as conflict:
            await submitter.submit(
                db_session,
                submit_request(
                    selected_ids=["bill-1"],
                    project_id="PRJ-999",
                    attempt_id=exc_info.value.extra["attempt_id"],
                ),
            )

        assert conflict.value.error_code == "ATTEMPT_PROJECT_MISMATCH"

    @pytest.mark.asyncio
    async def test_inconsistent_mapping_recorded(self, hosted, hosted_client, db_session, submit_request):
        """Test record promosso senza corrispondenza → nessuna fattura creata."""
        hosted.on("POST", BATCH_PATH, promoted(saved("bill-9", "Something else", 999, None)))

        with pytest.raises(InconsistentMapping) as exc_info:
            await InvoiceSubmitter(hosted_client).submit(db_session, submit_request())

        assert hosted.calls("POST", INVOICES_PATH) == []
        attempt = await InvoiceSubmitter.get_attempt(db_session, exc_info.value.extra["attempt_id"])
        assert attempt.state == AttemptState.FAILED.value
        assert attempt.error_code == "INCONSISTENT_MAPPING"
