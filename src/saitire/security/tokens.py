from __future__ import annotations

import base64
import json
import secrets
import time
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..config import AdminConfig

HKDF_INFO = b"saitire:admin-token:v1"
TOKEN_VERSION = "v1"
ADMIN_ROLE = "admin"


class TokenError(ValueError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    role: str
    issued_at: int
    expires_at: int


def _signing_key(secret: str) -> bytes:
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=HKDF_INFO)
    return hkdf.derive(secret.encode("utf-8"))


def _sign(secret: str, message: bytes) -> bytes:
    mac = hmac.HMAC(_signing_key(secret), hashes.SHA256())
    mac.update(message)
    return mac.finalize()


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _unb64(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def issue_token(secret: str, ttl_hours: int, role: str = ADMIN_ROLE, now: int | None = None) -> str:
    issued_at = int(now if now is not None else time.time())
    claims = {"role": role, "iat": issued_at, "exp": issued_at + int(ttl_hours * 3600)}
    payload = _b64(json.dumps(claims, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    signing_input = f"{TOKEN_VERSION}.{payload}".encode("ascii")
    return f"{TOKEN_VERSION}.{payload}.{_b64(_sign(secret, signing_input))}"


def verify_token(secret: str, token: str, now: int | None = None) -> TokenClaims:
    parts = token.split(".")
    if len(parts) != 3 or parts[0] != TOKEN_VERSION:
        raise TokenError("malformed_token")
    signing_input = f"{parts[0]}.{parts[1]}".encode("ascii")
    mac = hmac.HMAC(_signing_key(secret), hashes.SHA256())
    mac.update(signing_input)
    try:
        mac.verify(_unb64(parts[2]))
    except (InvalidSignature, ValueError) as exc:
        raise TokenError("invalid_signature") from exc
    try:
        claims = json.loads(_unb64(parts[1]).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise TokenError("malformed_claims") from exc
    if not isinstance(claims, dict):
        raise TokenError("malformed_claims")
    expires_at = int(claims.get("exp") or 0)
    current = int(now if now is not None else time.time())
    if expires_at <= current:
        raise TokenError("token_expired")
    return TokenClaims(
        role=str(claims.get("role") or ""),
        issued_at=int(claims.get("iat") or 0),
        expires_at=expires_at,
    )


def login_token(admin: AdminConfig, password: str) -> str:
    """Token handed out by /login; assumes ``password`` was already checked."""
    if admin.token_secret:
        return issue_token(admin.token_secret, admin.token_ttl_hours)
    return password


def is_admin_token(admin: AdminConfig, token: str) -> bool:
    if not token or not admin.password:
        return False
    if admin.token_secret:
        try:
            claims = verify_token(admin.token_secret, token)
        except TokenError:
            return False
        return claims.role == ADMIN_ROLE
    return secrets.compare_digest(token.encode("utf-8"), admin.password.encode("utf-8"))
