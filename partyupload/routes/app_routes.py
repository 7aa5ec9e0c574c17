"""Public client configuration route."""

from fastapi import APIRouter

from partyupload import config
from partyupload.schemas.app_config import AppConfigResponse

router = APIRouter(prefix="/api", tags=["Config"])


@router.get("/config", response_model=AppConfigResponse)
async def get_app_config():
    """
    Settings the web client needs before it can address events.

    Returns:
        - allowedDomains: Domains the client is served under
        - supportSubdomain: Whether events may be addressed as <eventId>.<domain>
        - allowEventCreation: Whether POST /api/events is open
    """
    return AppConfigResponse(
        allowed_domains=config.ALLOWED_DOMAINS,
        support_subdomain=config.SUPPORT_SUBDOMAIN,
        allow_event_creation=config.ALLOW_EVENT_CREATION,
    )
