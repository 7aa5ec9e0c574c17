"""API routes package."""

from partyupload.routes.app_routes import router as app_router
from partyupload.routes.event_routes import router as event_router
from partyupload.routes.file_routes import router as file_router

__all__ = ["app_router", "event_router", "file_router"]
