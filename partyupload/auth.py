"""Credential hashing and Basic authorization parsing."""

import base64
import binascii
from dataclasses import dataclass
from typing import Optional

import bcrypt
from fastapi import Header, Request

from partyupload import config

ROLE_ADMIN = "admin"
ROLE_GUEST = "guest"

# bcrypt only consumes the first 72 bytes of its input
_BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class Credentials:
    """
    Role claim and secret decoded from an Authorization header.
    """
    role: str
    secret: str

    def __repr__(self) -> str:
        return f"Credentials(role={self.role!r})"


def _secret_bytes(secret: str) -> bytes:
    return secret.encode('utf-8')[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """
    Hash an event secret using bcrypt.

    Args:
        password: Plain text secret to hash

    Returns:
        Bcrypt hash of the secret
    """
    salt = bcrypt.gensalt(rounds=config.PASSWORD_HASH_ROUNDS)
    hashed = bcrypt.hashpw(_secret_bytes(password), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """
    Verify a secret against a bcrypt hash in constant time.

    Args:
        password: Plain text secret to verify
        password_hash: Bcrypt hash to verify against, may be None

    Returns:
        True if the secret matches the hash, False otherwise
    """
    if not password or not password_hash:
        return False
    return bcrypt.checkpw(_secret_bytes(password), password_hash.encode('utf-8'))


def parse_basic_auth(authorization: Optional[str]) -> Optional[Credentials]:
    """
    Decode "Basic base64(role:secret)".

    Args:
        authorization: Raw Authorization header value

    Returns:
        Credentials, or None when the header is missing or malformed
    """
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "basic" or not token:
        return None
    try:
        decoded = base64.b64decode(token.strip(), validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        return None
    role, separator, secret = decoded.partition(":")
    if not separator or not role:
        return None
    return Credentials(role=role, secret=secret)


def get_credentials(authorization: Optional[str] = Header(None)) -> Optional[Credentials]:
    """
    FastAPI dependency exposing the caller's credential claim.

    Args:
        authorization: Authorization header value (format: "Basic <base64>")

    Returns:
        Parsed credentials or None when no usable claim was sent
    """
    return parse_basic_auth(authorization)


def get_client_identity(request: Request) -> str:
    """
    FastAPI dependency identifying the calling client for login throttling.

    Uses the first X-Forwarded-For hop when the service runs behind the edge
    proxy (TRUST_FORWARDED_FOR), otherwise the socket peer address.
    """
    if config.TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",", 1)[0].strip()
        if first_hop:
            return first_hop
    if request.client is not None:
        return request.client.host
    return "unknown"
