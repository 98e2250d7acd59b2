"""HMAC-SHA256 signing of webhook bodies (``X-Signature: sha256=<hex>``)."""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Signature"
_PREFIX = "sha256="


def _as_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def sign(body: bytes | str, secret: str) -> str:
    digest = hmac.new(_as_bytes(secret), _as_bytes(body), hashlib.sha256).hexdigest()
    return f"{_PREFIX}{digest}"


def verify_signature(body: bytes | str, signature: str, secret: str) -> bool:
    """Check a received signature in constant time.

    Receivers must pass the raw request body, not a re-serialised one.
    """
    if not signature or not signature.startswith(_PREFIX):
        return False
    return hmac.compare_digest(sign(body, secret), signature)
