"""
WS-Security UsernameToken generation.

The password never goes over the wire.  Each request carries a fresh
random nonce, the creation time and a digest over nonce, creation time
and password, which the peer recomputes.
"""

import base64
import hashlib
import secrets
from datetime import datetime
from datetime import timezone
from typing import Optional

from onvifcore.elements import wsse
from onvifcore.elements.base import BaseElement
from onvifcore.protocol.types import SecurityToken

NONCE_SIZE = 16

CREATED_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _to_bytes(value) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_digest(nonce: bytes, created: str, password) -> str:
    """
    Base64(SHA1(nonce + created + password)), as seen in captures from
    deployed cameras.
    """
    h = hashlib.sha1()
    h.update(_to_bytes(nonce))
    h.update(_to_bytes(created))
    h.update(_to_bytes(password))
    return base64.b64encode(h.digest()).decode("ascii")


def generate_token(
    username: str,
    password,
    now: Optional[datetime] = None,
    nonce: Optional[bytes] = None,
) -> SecurityToken:
    """
    Generates a token for exactly one request.

    Args:
        username: user name
        password: password, str or bytes
        now: override the clock (for tests), defaults to current UTC time
        nonce: override the nonce (for tests), defaults to NONCE_SIZE random bytes
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    created = now.strftime(CREATED_FORMAT)
    if nonce is None:
        nonce = secrets.token_bytes(NONCE_SIZE)
    return SecurityToken(
        username=username,
        nonce=nonce,
        created=created,
        digest=compute_digest(nonce, created, password or ""),
    )


def security_header(token: SecurityToken) -> BaseElement:
    """Builds the wsse:Security header element for a token"""
    return wsse.Security() + (
        wsse.UsernameToken()
        + [
            wsse.Username(token.username),
            wsse.Password(token.digest),
            wsse.Nonce(base64.b64encode(token.nonce).decode("ascii")),
            wsse.Created(token.created),
        ]
    )


def verify_token(
    username: str,
    password,
    token_username: str,
    token_digest: str,
    token_nonce: str,
    token_created: str,
) -> bool:
    """
    Recomputes the digest of a received UsernameToken and compares.
    token_nonce is the Base64 text from the wire.
    """
    if token_username != username:
        return False
    try:
        nonce = base64.b64decode(token_nonce, validate=True)
    except ValueError:
        return False
    expected = compute_digest(nonce, token_created, password or "")
    ## compare_digest refuses str with non-ASCII characters
    return secrets.compare_digest(
        expected.encode("ascii"), (token_digest or "").encode("utf-8")
    )
