"""Cheap structural checks on bearer tokens and claim-to-identity mapping.

Nothing here verifies a signature. :func:`preview_jwt` only rejects tokens
that cannot possibly be valid and exposes the header fields needed to pick a
key; :mod:`jwt_verify` does the real work.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Final

from fastapi import HTTPException

from src.finstream.core.models.identity import Audience, IdentityContext
from src.finstream.runtime.context import get_config

MAX_TOKEN_LENGTH: Final = 4096
MAX_HEADER_BYTES: Final = 8 * 1024
MAX_PAYLOAD_BYTES: Final = 64 * 1024
# base64url alphabet plus the segment separator; padding is not allowed
_TOKEN_ALPHABET: Final = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_."
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


def _split_compact(token: str) -> list[str]:
    if not token or len(token) > MAX_TOKEN_LENGTH:
        raise _unauthorized("Invalid JWT size")
    if not _TOKEN_ALPHABET.issuperset(token):
        raise _unauthorized("Invalid JWT characters")

    segments = token.split(".")
    if len(segments) != 3 or not all(segments):
        raise _unauthorized("Invalid JWT format")
    return segments


def _decode_segment(segment: str, what: str, max_bytes: int) -> dict[str, Any]:
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError) as e:
        raise _unauthorized(f"Invalid base64url in {what}") from e
    if len(raw) > max_bytes:
        raise _unauthorized(f"{what} too large")

    try:
        value = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise _unauthorized(f"Non-UTF8 {what}") from e
    except json.JSONDecodeError as e:
        raise _unauthorized(f"Invalid JSON in {what}") from e

    if not isinstance(value, dict):
        raise _unauthorized(f"{what} must be a JSON object")
    return value


@dataclass(frozen=True)
class JwtPreview:
    """Unverified view of a token's header and payload."""

    header: dict[str, Any]
    claims: dict[str, Any]

    @property
    def alg(self) -> str | None:
        return self.header.get("alg")

    @property
    def kid(self) -> str | None:
        return self.header.get("kid")

    @property
    def iss(self) -> str | None:
        iss = self.claims.get("iss")
        return iss.rstrip("/") if isinstance(iss, str) and iss else None


def preview_jwt(token: str) -> JwtPreview:
    """Decode header and payload once, without verifying anything."""
    header_seg, payload_seg, _signature = _split_compact(token)
    return JwtPreview(
        header=_decode_segment(header_seg, "JWT header", MAX_HEADER_BYTES),
        claims=_decode_segment(payload_seg, "JWT payload", MAX_PAYLOAD_BYTES),
    )


def create_identity_context(
    claims: dict[str, Any], audience: Audience
) -> IdentityContext:
    """Map verified claims onto an IdentityContext using the configured claim names."""
    names = get_config().jwt.claims
    subject = claims.get(names.user_id)
    if not subject:
        raise _unauthorized("Missing subject claim")

    return IdentityContext(
        subject=str(subject),
        username=claims.get(names.preferred_username),
        email=claims.get(names.email),
        audience=audience,
        issuer=str(claims.get("iss", "")),
        claims=dict(claims),
    )
