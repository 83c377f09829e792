"""
API v1 Routes
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from invoice_engine.api.v1 import accounts, invoices, projects

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(projects.router)
api_v1_router.include_router(invoices.router)
api_v1_router.include_router(accounts.router)

# Esportazione
__all__ = ["api_v1_router"]
