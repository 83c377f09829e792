"""
API Routes
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Modulo per l'aggregazione dei router versionati.
"""

from invoice_engine.api.v1 import api_v1_router

# Esportazione router
__all__ = ["api_v1_router"]
