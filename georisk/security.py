from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from georisk.errors import UnauthenticatedError
from georisk.models import Role


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _split_csv(raw: str) -> list[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


def _b64url_decode(raw: str) -> bytes:
    padded = raw + "=" * ((4 - len(raw) % 4) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def redact_sensitive(value: object) -> object:
    sensitive_keys = {"authorization", "token", "secret", "password", "api_key", "apikey", "access_token"}
    if isinstance(value, dict):
        return {
            str(key): "***REDACTED***" if str(key).lower() in sensitive_keys else redact_sensitive(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact_sensitive(x) for x in value]
    return value


@dataclass(frozen=True)
class Identity:
    """The caller as seen by the core: an opaque id plus a role."""

    id: str
    role: Role
    claims: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


def require_identity(identity: Identity | None) -> Identity:
    if identity is None or not identity.id:
        raise UnauthenticatedError()
    return identity


def _resolve_role(raw: object) -> Role:
    role = Role.parse(raw)
    if role is None:
        raise UnauthenticatedError(f"unsupported role: {raw!r}")
    return role


@dataclass
class JwtSecurityConfig:
    enabled: bool
    issuer: str
    audience: str
    shared_secret: str
    required_claims: list[str]
    role_claim: str
    log_redaction_enabled: bool

    @classmethod
    def from_env(cls) -> "JwtSecurityConfig":
        issuer = os.environ.get("JWT_ISSUER", "").strip()
        audience = os.environ.get("JWT_AUDIENCE", "").strip()
        shared_secret = os.environ.get("JWT_SHARED_SECRET", "").strip()
        return cls(
            enabled=bool(issuer or audience or shared_secret),
            issuer=issuer,
            audience=audience,
            shared_secret=shared_secret,
            required_claims=_split_csv(os.environ.get("JWT_REQUIRED_CLAIMS", "sub,exp")),
            role_claim=os.environ.get("JWT_ROLE_CLAIM", "role").strip() or "role",
            log_redaction_enabled=_env_bool("SECURITY_LOG_REDACTION_ENABLED", True),
        )


def _parse_token_parts(token: str) -> tuple[dict[str, Any], dict[str, Any], str, str]:
    parts = token.split(".")
    if len(parts) != 3:
        raise UnauthenticatedError("invalid token format")
    header_raw, payload_raw, signature_raw = parts
    try:
        header_obj = json.loads(_b64url_decode(header_raw))
        payload_obj = json.loads(_b64url_decode(payload_raw))
    except (json.JSONDecodeError, ValueError, TypeError):
        raise UnauthenticatedError("invalid token payload") from None
    if not isinstance(header_obj, dict) or not isinstance(payload_obj, dict):
        raise UnauthenticatedError("invalid token payload")
    return header_obj, payload_obj, f"{header_raw}.{payload_raw}", signature_raw


def _check_registered_claims(payload_obj: dict[str, Any], cfg: JwtSecurityConfig) -> None:
    now_ts = int(datetime.now(timezone.utc).timestamp())
    exp = _as_int(payload_obj.get("exp"))
    if exp is None or exp <= now_ts:
        raise UnauthenticatedError("token expired")
    nbf = _as_int(payload_obj.get("nbf"))
    if nbf is not None and nbf > now_ts:
        raise UnauthenticatedError("token not yet valid")
    if cfg.issuer and str(payload_obj.get("iss", "")) != cfg.issuer:
        raise UnauthenticatedError("jwt issuer mismatch")
    if cfg.audience:
        aud = payload_obj.get("aud")
        aud_values = {str(x) for x in aud} if isinstance(aud, list) else {str(aud or "")}
        if cfg.audience not in aud_values:
            raise UnauthenticatedError("jwt audience mismatch")
    for claim in cfg.required_claims:
        if claim not in payload_obj:
            raise UnauthenticatedError(f"missing required claim: {claim}")


def parse_and_validate_bearer_token(*, authorization: str | None, cfg: JwtSecurityConfig) -> Identity:
    if not authorization:
        raise UnauthenticatedError("missing Authorization bearer token")
    prefix = "Bearer "
    if not authorization.startswith(prefix):
        raise UnauthenticatedError("invalid Authorization header")
    token = authorization[len(prefix) :].strip()
    if not token:
        raise UnauthenticatedError("empty bearer token")
    header_obj, payload_obj, signing_input, signature_raw = _parse_token_parts(token)
    if str(header_obj.get("alg", "")).upper() != "HS256":
        raise UnauthenticatedError("unsupported jwt algorithm")
    if not cfg.shared_secret:
        raise UnauthenticatedError("jwt shared secret not configured")
    expected = _b64url_encode(
        hmac.new(
            cfg.shared_secret.encode("utf-8"),
            signing_input.encode("ascii"),
            hashlib.sha256,
        ).digest()
    )
    if not hmac.compare_digest(expected, signature_raw):
        raise UnauthenticatedError("invalid token signature")
    _check_registered_claims(payload_obj, cfg)

    subject = str(payload_obj.get("sub") or "").strip()
    if not subject:
        raise UnauthenticatedError("missing subject claim")
    return Identity(id=subject, role=_resolve_role(payload_obj.get(cfg.role_claim)), claims=payload_obj)


def identity_from_headers(headers: Mapping[str, str]) -> Identity | None:
    """Development-mode identity taken from ``x-user-id`` / ``x-user-role``.

    Returns ``None`` when no user id is supplied so that the core decides
    whether the operation needs an identity.
    """
    user_id = (headers.get("x-user-id") or "").strip()
    if not user_id:
        return None
    return Identity(id=user_id, role=_resolve_role(headers.get("x-user-role") or Role.REPORTER.value))
