"""
Password hashing and session tokens.

Passwords are stored as hex SHA-256 digests.  Tokens are opaque to clients:
base64("<username>:<issued at, epoch ms>"), valid for TOKEN_TTL_DAYS.
"""

import base64
import binascii
import hashlib
import hmac
import re
import time
from dataclasses import dataclass

from config import TOKEN_TTL_DAYS

_DIGEST_RE = re.compile(r"[0-9a-fA-F]{64}")


class AuthError(Exception):
    """An auth request that must be refused with *status_code*."""

    def __init__(self, message: str, status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class TokenClaims:
    username: str
    issued_at_ms: int


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(password: str, stored_hash: str) -> bool:
    return hmac.compare_digest(hash_password(password).encode("utf-8"), (stored_hash or "").encode("utf-8"))


def matches_legacy_plaintext(password: str, stored: str) -> bool:
    """True when *stored* is an unhashed password equal to *password*.

    A stored value shaped like a digest is never compared as plaintext.
    """
    if not stored or _DIGEST_RE.fullmatch(stored):
        return False
    return hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))


def now_ms() -> int:
    return int(time.time() * 1000)


def issue_token(username: str, issued_at_ms: int | None = None) -> str:
    issued = now_ms() if issued_at_ms is None else issued_at_ms
    return base64.b64encode(f"{username}:{issued}".encode("utf-8")).decode("ascii")


def decode_token(token: str) -> TokenClaims:
    """Decode a token without checking the user or its age."""
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
        username, _, issued = decoded.rpartition(":")
        claims = TokenClaims(username=username, issued_at_ms=int(issued))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise AuthError("Nevažeći token") from exc
    if not claims.username:
        raise AuthError("Nevažeći token")
    return claims


def is_expired(claims: TokenClaims, at_ms: int | None = None, ttl_days: int = TOKEN_TTL_DAYS) -> bool:
    at = now_ms() if at_ms is None else at_ms
    return at - claims.issued_at_ms > ttl_days * 24 * 60 * 60 * 1000
