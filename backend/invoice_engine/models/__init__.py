"""
Modelli Database SQLAlchemy
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Import centralizzato di tutti i modelli per create_all e usage generico.

Il database locale contiene solo:
- InvoiceSubmissionAttempt: journal dei tentativi di emissione
"""

# SQLAlchemy 2.0 Base declarativa
# Importato qui per essere disponibile per tutti i modelli
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


# Import modelli implementati
from invoice_engine.models.submission import AttemptState, InvoiceSubmissionAttempt

__all__ = [
    "Base",
    "AttemptState",
    "InvoiceSubmissionAttempt",
]
