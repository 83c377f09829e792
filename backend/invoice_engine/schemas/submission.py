"""
Schemas Pydantic per il Journal dei Tentativi di Emissione
Progetto: Logistics Back-Office (Fatturazione Consolidata)
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from invoice_engine.models.submission import AttemptState


class SubmissionAttemptRead(BaseModel):
    """Stato di un tentativo di emissione."""

    id: uuid.UUID
    project_id: str
    state: AttemptState
    selected_ids: list[str] = Field(default_factory=list)
    id_map: dict[str, str] = Field(default_factory=dict)
    invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    journal_entry_id: Optional[str] = None
    error_code: Optional[str] = None
    error_detail: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
