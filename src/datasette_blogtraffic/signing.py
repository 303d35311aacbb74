"""
HMAC request signing for datasette-blogtraffic write routes.

A signed request carries three headers:

    Authorization: Bearer <api token>
    X-Blog-Signature: sha256=<hex digest>
    X-Timestamp: <unix epoch milliseconds>

The digest is HMAC-SHA256 over the raw request body bytes followed by the
timestamp string, keyed with the shared secret. The body is hashed exactly
as received, before any JSON parsing. Requests whose timestamp is more than
five minutes away from the server clock are rejected to limit replays.
"""

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Mapping

SIGNATURE_PREFIX = "sha256="
BEARER_PREFIX = "Bearer "
REPLAY_WINDOW_MS = 5 * 60 * 1000

# Failure reasons, in the order checks are performed by verify_request()
MISSING_HEADERS = "missing_headers"
MISSING_TOKEN = "missing_token"
INVALID_TOKEN = "invalid_token"
BAD_TIMESTAMP = "bad_timestamp"
EXPIRED = "expired"
BAD_SIGNATURE = "bad_signature"

REASON_MESSAGES = {
    MISSING_HEADERS: "Missing auth headers",
    MISSING_TOKEN: "Invalid API token",
    INVALID_TOKEN: "Invalid API token",
    BAD_TIMESTAMP: "Invalid timestamp",
    EXPIRED: "Request expired",
    BAD_SIGNATURE: "Invalid signature",
}


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a signature check. ``reason`` is set when invalid."""

    valid: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.valid

    @property
    def message(self) -> str | None:
        return REASON_MESSAGES.get(self.reason) if self.reason else None


VALID = VerificationResult(valid=True)


def invalid(reason: str) -> VerificationResult:
    return VerificationResult(valid=False, reason=reason)


@dataclass
class SignedRequest:
    """The parts of an inbound request that take part in verification."""

    raw_body: bytes
    authorization: str | None = None
    signature: str | None = None
    timestamp: str | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], raw_body: bytes) -> "SignedRequest":
        """Build from a header mapping with lower-case names (Datasette style)."""
        return cls(
            raw_body=raw_body,
            authorization=headers.get("authorization"),
            signature=headers.get("x-blog-signature"),
            timestamp=headers.get("x-timestamp"),
        )


def now_millis() -> int:
    return int(time.time() * 1000)


def _as_bytes(body: bytes | str) -> bytes:
    return body.encode("utf-8") if isinstance(body, str) else body


def compute_signature(secret: str, body: bytes | str, timestamp_ms: int) -> str:
    """Lowercase hex HMAC-SHA256 of ``body || str(timestamp_ms)``."""
    message = _as_bytes(body) + str(timestamp_ms).encode("ascii")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def sign(secret: str, body: bytes | str, timestamp_ms: int) -> str:
    """Return the X-Blog-Signature header value for a body."""
    return SIGNATURE_PREFIX + compute_signature(secret, body, timestamp_ms)


def signed_headers(
    secret: str, api_token: str, body: bytes | str, timestamp_ms: int | None = None
) -> dict[str, str]:
    """Build the full set of auth headers for a signed request."""
    if timestamp_ms is None:
        timestamp_ms = now_millis()
    return {
        "Authorization": f"{BEARER_PREFIX}{api_token}",
        "X-Blog-Signature": sign(secret, body, timestamp_ms),
        "X-Timestamp": str(timestamp_ms),
    }


def strip_bearer(authorization: str | None) -> str:
    """Extract the token from an Authorization header; '' if there is none."""
    if not authorization:
        return ""
    value = authorization.strip()
    if value == BEARER_PREFIX.strip():
        return ""
    return value.removeprefix(BEARER_PREFIX).strip()


def parse_timestamp(value: str | None) -> int | None:
    """
    Parse a millisecond timestamp header; None if malformed.

    Only the canonical base-10 form is accepted (no sign, whitespace or
    leading zeros), so ``str()`` of the result is the text the client signed.
    """
    if not value or not value.isascii() or not value.isdigit():
        return None
    if len(value) > 1 and value.startswith("0"):
        return None
    return int(value)


def signatures_match(expected: str, provided: str) -> bool:
    """
    Compare two signatures in constant time with respect to their content.

    The length check may short-circuit since digest length is not secret.
    """
    expected_bytes = expected.encode("utf-8")
    provided_bytes = provided.encode("utf-8")
    if len(expected_bytes) != len(provided_bytes):
        return False
    return secrets.compare_digest(expected_bytes, provided_bytes)


def verify(
    secret: str,
    body: bytes | str,
    timestamp_ms: int,
    provided_signature: str,
    now_ms: int | None = None,
    window_ms: int = REPLAY_WINDOW_MS,
) -> VerificationResult:
    """
    Verify a body signature and its replay window.

    A timestamp exactly ``window_ms`` away from ``now_ms`` is still accepted.
    The provided signature may carry a ``sha256=`` prefix; it is not
    case-folded.
    """
    if now_ms is None:
        now_ms = now_millis()

    if abs(now_ms - timestamp_ms) > window_ms:
        return invalid(EXPIRED)

    provided = provided_signature or ""
    if provided.startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]

    expected = compute_signature(secret, body, timestamp_ms)
    if not signatures_match(expected, provided):
        return invalid(BAD_SIGNATURE)

    return VALID


def verify_request(
    request: SignedRequest,
    secret: str,
    api_token: str,
    now_ms: int | None = None,
    window_ms: int = REPLAY_WINDOW_MS,
) -> VerificationResult:
    """
    Run every check on a signed request; the first failure wins.

    Header presence, then bearer token, then timestamp format and window,
    then the body signature.
    """
    if not request.authorization or not request.signature or not request.timestamp:
        return invalid(MISSING_HEADERS)

    token = strip_bearer(request.authorization)
    if not token:
        return invalid(MISSING_TOKEN)
    if not secrets.compare_digest(token.encode("utf-8"), api_token.encode("utf-8")):
        return invalid(INVALID_TOKEN)

    timestamp_ms = parse_timestamp(request.timestamp)
    if timestamp_ms is None:
        return invalid(BAD_TIMESTAMP)

    return verify(
        secret,
        request.raw_body,
        timestamp_ms,
        request.signature,
        now_ms=now_ms,
        window_ms=window_ms,
    )
