"""Pydantic schemas for the public client configuration."""

from typing import List

from partyupload.schemas.common import CamelModel


class AppConfigResponse(CamelModel):
    """Response model for GET /api/config."""
    allowed_domains: List[str]
    support_subdomain: bool
    allow_event_creation: bool
