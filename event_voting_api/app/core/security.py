"""
Bearer token helpers.

Callers authenticate with a compact HS256 JWT carrying the user's email
(``sub``), id (``user_id``) and expiry (``exp``).  Accounts are created
out of band (see ``create_token.py``), so this module only answers the
question "who is calling", which the services use for ownership checks.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .db import get_connection

HEADER = {"alg": "HS256", "typ": "JWT"}


def _encode_segment(claims: Dict[str, Any]) -> str:
    raw = json.dumps(claims, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _decode_segment(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _signature(signing_input: str) -> bytes:
    return hmac.new(settings.secret_key.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest()


def create_access_token(data: Dict[str, Any], expires_delta: Optional[int] = None) -> str:
    """Sign ``data`` into a token.

    Parameters
    ----------
    data : dict
        Claims to embed, typically ``{"sub": email, "user_id": id}``.
    expires_delta : Optional[int]
        Lifetime in seconds, ``settings.access_token_expire_minutes``
        when omitted.
    """
    lifetime = expires_delta or settings.access_token_expire_minutes * 60
    claims = {**data, "exp": int(time.time()) + lifetime}
    signing_input = f"{_encode_segment(HEADER)}.{_encode_segment(claims)}"
    signature = base64.urlsafe_b64encode(_signature(signing_input)).rstrip(b"=").decode("ascii")
    return f"{signing_input}.{signature}"


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Claims of a correctly signed, unexpired token, else ``None``."""
    try:
        header, payload, signature = token.split(".")
    except ValueError:
        return None
    try:
        if not hmac.compare_digest(_signature(f"{header}.{payload}"), _decode_segment(signature)):
            return None
        claims = json.loads(_decode_segment(payload))
    except (ValueError, UnicodeError):
        return None
    expires = claims.get("exp") if isinstance(claims, dict) else None
    if expires is None or int(expires) < int(time.time()):
        return None
    return claims


security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Dict[str, Any]:
    """Resolve the bearer token to a known user.

    The returned claims have ``user_id`` and ``email`` refreshed from
    the ``users`` table; a token for a deleted account is rejected.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    claims = decode_access_token(credentials.credentials)
    if not claims:
        raise _unauthorized("Invalid or expired token")
    conn = get_connection()
    try:
        row = conn.execute("SELECT id, email FROM users WHERE email = ?", (claims.get("sub"),)).fetchone()
    finally:
        conn.close()
    if row is None:
        raise _unauthorized("User no longer exists")
    claims.update(user_id=row["id"], email=row["email"])
    return claims
