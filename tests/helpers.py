"""Request helpers shared by the API tests."""

import base64
from typing import Any, Dict

ADMIN_PASSWORD = "admin-secret-1"
GUEST_PASSWORD = "guest-pw"


def basic_auth(role: str, secret: str) -> Dict[str, str]:
    """
    Build an Authorization header for a role claim.

    Args:
        role: "admin" or "guest"
        secret: Plain text secret

    Returns:
        Header dict usable with TestClient requests
    """
    token = base64.b64encode(f"{role}:{secret}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


def admin_auth() -> Dict[str, str]:
    return basic_auth("admin", ADMIN_PASSWORD)


def guest_auth() -> Dict[str, str]:
    return basic_auth("guest", GUEST_PASSWORD)


def event_payload(event_id: str = "summer-party", **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "eventId": event_id,
        "name": "Summer Party",
        "adminPassword": ADMIN_PASSWORD,
        "adminPasswordConfirm": ADMIN_PASSWORD,
    }
    payload.update(overrides)
    return payload
