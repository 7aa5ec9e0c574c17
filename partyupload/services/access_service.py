"""Access decisions for event requests."""

from enum import Enum
from typing import Optional

from common.logging_config import get_logger
from partyupload.auth import ROLE_ADMIN, ROLE_GUEST, Credentials, verify_password
from partyupload.exceptions import (
    AccessForbiddenError,
    AuthorizationRequiredError,
    GuestDownloadsDisabledError,
    GuestUploadsDisabledError,
)
from partyupload.repositories.event_repository import EventRecord
from partyupload.service_locator import get_login_throttle
from partyupload.services.login_throttle import LoginThrottle

logger = get_logger(__name__)


class AccessLevel(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    GUEST = "guest"
    ADMIN = "admin"


class Capability(str, Enum):
    """Guest-level capabilities that an event can switch off."""
    DOWNLOAD = "download"
    UPLOAD = "upload"


class AccessService:
    """
    Turns a credential claim and an event into an access level.

    A failed admin claim counts as no identity at all (401) while a failed
    guest claim is forbidden (403).
    """

    def __init__(self, throttle: Optional[LoginThrottle] = None):
        self.throttle = throttle or get_login_throttle()

    def authorize(
        self,
        event: EventRecord,
        credentials: Optional[Credentials],
        client_id: str,
        allow_guest: bool,
        capability: Optional[Capability] = None,
    ) -> AccessLevel:
        """
        Resolve the access level of a request.

        Args:
            event: Event being accessed
            credentials: Parsed Authorization claim, None if absent
            client_id: Caller identity used for login throttling
            allow_guest: Whether guest-level callers may use the endpoint
            capability: Guest capability the endpoint needs, if any

        Returns:
            The resolved AccessLevel

        Raises:
            AuthorizationRequiredError: 401, no usable identity
            AccessForbiddenError: 403, identity present but not allowed
            GuestDownloadsDisabledError: 403, guest downloads switched off
            GuestUploadsDisabledError: 403, guest uploads switched off
            RateLimitedError: 429, too many failed attempts
        """
        if credentials is not None and credentials.role == ROLE_ADMIN:
            return self._authorize_admin(event, credentials, client_id)

        if not allow_guest:
            if credentials is None or not credentials.secret:
                raise AuthorizationRequiredError()
            logger.warning(
                f"Non-admin claim on admin endpoint [event_id={event.event_id}] role={credentials.role}"
            )
            raise AccessForbiddenError()

        if not event.secured:
            if capability == Capability.UPLOAD and not event.allow_guest_upload:
                raise GuestUploadsDisabledError()
            return AccessLevel.UNAUTHENTICATED

        if credentials is None or not credentials.secret:
            raise AuthorizationRequiredError()
        if credentials.role != ROLE_GUEST:
            raise AccessForbiddenError()

        self._ensure_guest_capability(event, capability)

        key = (event.event_id, client_id, ROLE_GUEST)
        self.throttle.check(key)
        if not verify_password(credentials.secret, event.guest_password_hash):
            failures = self.throttle.record_failure(key)
            logger.warning(
                f"Guest authentication failed [event_id={event.event_id}] [client={client_id}] "
                f"failures={failures}"
            )
            raise AccessForbiddenError()

        self.throttle.reset(key)
        return AccessLevel.GUEST

    def _authorize_admin(self, event: EventRecord, credentials: Credentials, client_id: str) -> AccessLevel:
        if not credentials.secret:
            raise AuthorizationRequiredError()

        key = (event.event_id, client_id, ROLE_ADMIN)
        self.throttle.check(key)
        if not verify_password(credentials.secret, event.admin_password_hash):
            failures = self.throttle.record_failure(key)
            logger.warning(
                f"Admin authentication failed [event_id={event.event_id}] [client={client_id}] "
                f"failures={failures}"
            )
            raise AuthorizationRequiredError()

        self.throttle.reset(key)
        return AccessLevel.ADMIN

    @staticmethod
    def _ensure_guest_capability(event: EventRecord, capability: Optional[Capability]) -> None:
        if capability == Capability.DOWNLOAD and not event.guest_downloads_enabled:
            raise GuestDownloadsDisabledError()
        if capability == Capability.UPLOAD and not event.allow_guest_upload:
            raise GuestUploadsDisabledError()
