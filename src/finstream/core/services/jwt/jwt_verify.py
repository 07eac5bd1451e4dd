"""JWT verification service."""

from authlib.jose import JoseError, JsonWebKey, jwt
from fastapi import HTTPException
from loguru import logger

from src.finstream.core.models.identity import Audience, IdentityContext
from src.finstream.core.services.jwt.jwks import JwksService
from src.finstream.core.services.jwt.jwt_utils import (
    create_identity_context,
    preview_jwt,
)
from src.finstream.runtime.context import get_config


class JwtVerificationService:
    def __init__(self, jwks_service: JwksService):
        self._jwks_service = jwks_service

    async def verify_jwt(self, token: str, tenant: Audience) -> IdentityContext:
        """Verify ``token`` against the named tenant and return the caller identity.

        Raises:
            HTTPException: 401 for any token that does not verify.
        """
        cfg = get_config()
        pv = preview_jwt(token)

        if pv.alg not in cfg.jwt.allowed_algorithms:
            raise HTTPException(status_code=401, detail="Disallowed JWT algorithm")

        tenant_cfg = cfg.oidc.tenants.get(tenant)
        if tenant_cfg is None or not tenant_cfg.enabled:
            raise HTTPException(
                status_code=401, detail=f"Tenant '{tenant}' is not configured"
            )

        expected_issuer = tenant_cfg.issuer.rstrip("/")
        if pv.iss is None:
            raise HTTPException(status_code=401, detail="Missing iss claim")
        if pv.iss != expected_issuer:
            raise HTTPException(status_code=401, detail="Invalid issuer")

        claims_options = {
            "iss": {"essential": True, "values": [expected_issuer, tenant_cfg.issuer]},
            "aud": {"essential": True, "values": tenant_cfg.expected_audiences},
            "sub": {"essential": True},
        }

        # select the signing key by kid once
        jwks = await self._jwks_service.fetch_jwks(tenant_cfg)
        jwk_set = (
            {"keys": [k for k in jwks.get("keys", []) if k.get("kid") == pv.kid]}
            if pv.kid
            else jwks
        )
        if not jwk_set.get("keys"):
            raise HTTPException(status_code=401, detail=f"No JWK matches kid={pv.kid}")

        try:
            key_set = JsonWebKey.import_key_set(jwk_set)
            claims = jwt.decode(token, key_set, claims_options=claims_options)
            claims.validate(leeway=cfg.jwt.clock_skew)
        except (JoseError, ValueError) as exc:
            raise HTTPException(status_code=401, detail=f"JWT error: {exc}") from exc

        logger.debug("Verified token for subject {} on tenant {}", claims.get("sub"), tenant)
        return create_identity_context(dict(claims), tenant)
