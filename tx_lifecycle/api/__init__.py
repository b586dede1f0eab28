"""API routers package."""
from tx_lifecycle.api.definitions import router as definitions_router
from tx_lifecycle.api.pending import router as pending_router

__all__ = [
    "definitions_router",
    "pending_router",
]
