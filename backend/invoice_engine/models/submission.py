"""
Modello SQLAlchemy per il Journal dei Tentativi di Emissione
Progetto: Logistics Back-Office (Fatturazione Consolidata)

L'emissione è un'operazione in due fasi (promozione voci virtuali,
creazione fattura) senza transazione remota comune. Ogni tentativo
registra la fase raggiunta e la mappa virtuale → reale, così un
nuovo tentativo riparte dalla seconda fase senza ripromuovere.

Transizioni: pending → promoted → submitted | failed
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from invoice_engine.models import Base
from invoice_engine.models.mixins import TimestampMixin, UUIDMixin


class AttemptState(str, Enum):
    """Fase raggiunta da un tentativo di emissione."""
    PENDING = "pending"
    PROMOTED = "promoted"
    SUBMITTED = "submitted"
    FAILED = "failed"


class InvoiceSubmissionAttempt(Base, UUIDMixin, TimestampMixin):
    """
    Tentativo di emissione di una fattura consolidata.

    Attributes:
        id: UUID del tentativo, restituito al chiamante per i retry
        project_id: Progetto a cui appartengono le voci
        state: Fase raggiunta (pending, promoted, submitted, failed)
        selected_ids: Id selezionati all'avvio (possono essere virtuali)
        id_map: Mappa id virtuale → id reale dopo la promozione
        invoice_id: Id della fattura creata dal servizio remoto
        invoice_number: Numero assegnato dal servizio remoto
        journal_entry_id: Scrittura contabile, se registrata
        error_code: Codice dell'ultimo errore
        error_detail: Messaggio dell'ultimo errore
    """

    __tablename__ = "invoice_submission_attempts"

    project_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        doc="Progetto di appartenenza delle voci",
    )

    state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AttemptState.PENDING.value,
        doc="Fase raggiunta dal tentativo",
    )

    selected_ids: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        doc="Id selezionati all'avvio del tentativo",
    )

    id_map: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        doc="Mappa id virtuale → id reale",
    )

    invoice_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    invoice_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    journal_entry_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    error_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    error_detail: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Ultimo errore restituito dal servizio remoto",
    )

    __table_args__ = (
        Index("ix_invoice_submission_attempts_project", "project_id"),
        CheckConstraint(
            "state IN ('pending', 'promoted', 'submitted', 'failed')",
            name="ck_invoice_submission_attempts_state",
        ),
    )

    @property
    def is_submitted(self) -> bool:
        return self.state == AttemptState.SUBMITTED.value

    def mark(
        self,
        state: AttemptState,
        error_code: Optional[str] = None,
        error_detail: Optional[str] = None,
    ) -> None:
        """Registra la nuova fase del tentativo."""
        self.state = state.value
        self.error_code = error_code
        self.error_detail = error_detail

    def __repr__(self) -> str:
        return f"<InvoiceSubmissionAttempt(id={self.id}, project={self.project_id}, state={self.state})>"
