import base64
import time
from typing import Any

from authlib.jose import jwt


def oct_jwk(key: bytes, kid: str) -> dict[str, str]:
    return {
        "kty": "oct",
        "k": base64.urlsafe_b64encode(key).rstrip(b"=").decode("ascii"),
        "alg": "HS256",
        "kid": kid,
    }


def sign_token(
    claims: dict[str, Any],
    key: bytes,
    kid: str | None,
    alg: str = "HS256",
) -> str:
    header = {"alg": alg}
    if kid is not None:
        header["kid"] = kid
    return jwt.encode(header, claims, key).decode("ascii")


def default_claims(issuer: str, audience: str, **overrides: Any) -> dict[str, Any]:
    now = int(time.time())
    claims = {
        "iss": issuer,
        "aud": audience,
        "sub": "user-123",
        "preferred_username": "alice",
        "email": "a@x.com",
        "iat": now,
        "exp": now + 3600,
    }
    claims.update(overrides)
    return {k: v for k, v in claims.items() if v is not None}
