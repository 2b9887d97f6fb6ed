"""Signed OAuth ``state`` parameter for the Google consent round trip."""

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Optional

from cyra_kanban.utils.errors import BadRequest, InternalError
from cyra_kanban.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

STATE_MAX_AGE_SECONDS = 600
DEFAULT_REDIRECT = "/settings"


def get_state_secret() -> str:
    """Signing key; falls back to the Google client secret."""
    secret = (os.environ.get("OAUTH_STATE_SECRET") or os.environ.get("GOOGLE_CLIENT_SECRET") or "").strip()
    if not secret:
        raise InternalError("OAUTH_STATE_SECRET not set")
    return secret


def safe_redirect_path(path: Optional[str]) -> str:
    """Only same-origin absolute paths; ``//host`` and full URLs are rejected."""
    if not path or not path.startswith("/") or path.startswith("//") or "\\" in path:
        return DEFAULT_REDIRECT
    return path


def _sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def sign_state(user_id: str, redirect: Optional[str] = None, now: Optional[float] = None) -> str:
    """Encode ``{user_id, redirect, iat}`` as ``payload.signature``."""
    body = {
        "user_id": user_id,
        "redirect": safe_redirect_path(redirect),
        "iat": int(now if now is not None else time.time()),
    }
    payload = _b64encode(json.dumps(body, separators=(",", ":")).encode("utf-8"))
    return f"{payload}.{_sign(payload, get_state_secret())}"


def verify_state(state: Optional[str], now: Optional[float] = None) -> dict:
    """
    Check signature and age of a state blob and return its payload.

    Raises BadRequest("invalid_state") for anything forged, malformed or
    older than ten minutes.
    """
    if not state or "." not in state:
        raise BadRequest("invalid_state")

    payload, signature = state.rsplit(".", 1)
    if not hmac.compare_digest(_sign(payload, get_state_secret()), signature):
        logger.warning("OAuth state signature mismatch")
        raise BadRequest("invalid_state")

    try:
        data = json.loads(_b64decode(payload).decode("utf-8"))
        issued_at = int(data["iat"])
        user_id = data["user_id"]
    except (ValueError, KeyError, TypeError) as e:
        raise BadRequest("invalid_state") from e

    current = now if now is not None else time.time()
    if current - issued_at > STATE_MAX_AGE_SECONDS or issued_at - current > 60:
        logger.warning("OAuth state expired", age_seconds=int(current - issued_at))
        raise BadRequest("invalid_state")

    return {
        "user_id": user_id,
        "redirect": safe_redirect_path(data.get("redirect")),
        "iat": issued_at,
    }
