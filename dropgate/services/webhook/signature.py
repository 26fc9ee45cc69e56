"""Paddle Billing webhook signature verification.

Header format: `ts=<unix seconds>;h1=<hex hmac>`; extra fields are ignored.
The signed payload is `ts + ":" + raw body`, HMAC-SHA256 keyed by the
notification destination secret.
"""

import hashlib
import hmac
import time


SIGNATURE_TOLERANCE_SECONDS = 300


def _as_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def parse_signature_header(header: str | None) -> dict[str, str]:
    parts: dict[str, str] = {}
    if not header:
        return parts
    for chunk in header.split(";"):
        if "=" not in chunk:
            continue
        key, value = chunk.split("=", 1)
        key, value = key.strip(), value.strip()
        if key and value:
            parts[key] = value
    return parts


def compute_digest(raw_body: bytes | str, secret: bytes | str, ts: str) -> str:
    signed_payload = _as_bytes(ts) + b":" + _as_bytes(raw_body)
    return hmac.new(_as_bytes(secret), signed_payload, hashlib.sha256).hexdigest()


def constant_time_equals(expected: str, provided: str) -> bool:
    """Compare two hex strings without short-circuiting on the first mismatch."""

    if len(expected) != len(provided):
        return False
    diff = 0
    for left, right in zip(expected.encode("utf-8"), provided.encode("utf-8")):
        diff |= left ^ right
    return diff == 0


def verify_signature(
    raw_body: bytes | str,
    signature_header: str | None,
    secret: bytes | str,
    now: float | None = None,
) -> bool:
    """Return True only for a fresh, correctly signed body."""

    parts = parse_signature_header(signature_header)
    ts = parts.get("ts")
    h1 = parts.get("h1")
    if not ts or not h1:
        return False
    try:
        ts_value = int(ts)
    except ValueError:
        return False

    current = time.time() if now is None else now
    if abs(int(current) - ts_value) > SIGNATURE_TOLERANCE_SECONDS:
        return False

    return constant_time_equals(compute_digest(raw_body, secret, ts), h1)


def sign_payload(raw_body: bytes | str, secret: bytes | str, ts: int | None = None) -> str:
    """Build a `Paddle-Signature` header value for a body (tests, local replay)."""

    ts_value = str(int(time.time()) if ts is None else ts)
    return f"ts={ts_value};h1={compute_digest(raw_body, secret, ts_value)}"
