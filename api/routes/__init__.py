"""API routes."""

from api.routes.clients import router as clients_router
from api.routes.conversations import router as conversations_router

__all__ = ["conversations_router", "clients_router"]
