import time

import httpx
import pytest
from fastapi import HTTPException

from src.finstream.core.services import JWKSCacheInMemory, JwksService, JwtVerificationService
from src.finstream.core.services.jwt import jwks as jwks_module
from src.finstream.core.services.jwt.jwt_utils import preview_jwt
from src.finstream.runtime.config.config_data import ConfigData, JWTClaimsConfig
from src.finstream.runtime.context import with_context
from tests.utils import default_claims, sign_token


class TestPreviewJwt:
    def test_preview_decodes_header_and_claims(self, token_factory):
        pv = preview_jwt(token_factory())

        assert pv.alg == "HS256"
        assert pv.kid == "external-key"
        assert pv.iss == "https://external.issuer.test"
        assert pv.claims["sub"] == "user-123"

    @pytest.mark.parametrize(
        "token",
        ["", "abc", "a.b", "a.b.c.d", "a..c", ".b.c", "a.b.", "a b.c.d", "x" * 5000],
    )
    def test_malformed_tokens_are_rejected(self, token):
        with pytest.raises(HTTPException) as exc_info:
            preview_jwt(token)
        assert exc_info.value.status_code == 401

    def test_non_json_payload_is_rejected(self):
        with pytest.raises(HTTPException, match="401"):
            preview_jwt("eyJhbGciOiJIUzI1NiJ9.bm90LWpzb24.c2ln")


class TestJwtVerification:
    async def test_external_token_yields_identity(
        self, jwt_verify_service: JwtVerificationService, token_factory
    ):
        identity = await jwt_verify_service.verify_jwt(token_factory(), "external")

        assert identity.subject == "user-123"
        assert identity.username == "alice"
        assert identity.email == "a@x.com"
        assert identity.audience == "external"
        assert identity.issuer == "https://external.issuer.test"

    async def test_internal_token_accepts_any_configured_audience(
        self, jwt_verify_service: JwtVerificationService, token_factory
    ):
        token = token_factory("internal", aud="finstream-admin", sub="svc-1")

        identity = await jwt_verify_service.verify_jwt(token, "internal")

        assert identity.subject == "svc-1"
        assert identity.audience == "internal"

    async def test_token_of_other_tenant_is_rejected(
        self, jwt_verify_service: JwtVerificationService, token_factory
    ):
        with pytest.raises(HTTPException) as exc_info:
            await jwt_verify_service.verify_jwt(token_factory("external"), "internal")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid issuer"

    async def test_wrong_audience_is_rejected(
        self, jwt_verify_service: JwtVerificationService, token_factory
    ):
        with pytest.raises(HTTPException) as exc_info:
            await jwt_verify_service.verify_jwt(
                token_factory(aud="someone-else"), "external"
            )
        assert exc_info.value.status_code == 401

    async def test_expired_token_is_rejected(
        self, jwt_verify_service: JwtVerificationService, token_factory
    ):
        past = int(time.time()) - 3600
        with pytest.raises(HTTPException) as exc_info:
            await jwt_verify_service.verify_jwt(
                token_factory(iat=past - 60, exp=past), "external"
            )
        assert exc_info.value.status_code == 401

    async def test_missing_subject_is_rejected(
        self, jwt_verify_service: JwtVerificationService, token_factory
    ):
        with pytest.raises(HTTPException) as exc_info:
            await jwt_verify_service.verify_jwt(token_factory(sub=None), "external")
        assert exc_info.value.status_code == 401

    async def test_bad_signature_is_rejected(
        self, jwt_verify_service: JwtVerificationService, tenants
    ):
        cfg = tenants["external"]
        token = sign_token(
            default_claims(cfg.issuer, cfg.client_id),
            b"not-the-right-key-0123456789abcd",
            "external-key",
        )

        with pytest.raises(HTTPException) as exc_info:
            await jwt_verify_service.verify_jwt(token, "external")
        assert exc_info.value.status_code == 401

    async def test_unknown_kid_is_rejected(
        self, jwt_verify_service: JwtVerificationService, tenants, signing_keys
    ):
        cfg = tenants["external"]
        key, _ = signing_keys["external"]
        token = sign_token(default_claims(cfg.issuer, cfg.client_id), key, "rotated")

        with pytest.raises(HTTPException, match="kid=rotated"):
            await jwt_verify_service.verify_jwt(token, "external")

    async def test_disallowed_algorithm_is_rejected(
        self, jwt_verify_service: JwtVerificationService, token_factory
    ):
        override = ConfigData()
        override.jwt.allowed_algorithms = ["RS256"]

        with with_context(override):
            with pytest.raises(HTTPException, match="Disallowed JWT algorithm"):
                await jwt_verify_service.verify_jwt(token_factory(), "external")

    async def test_disabled_tenant_is_rejected(
        self, jwt_verify_service: JwtVerificationService, token_factory, tenants
    ):
        override = ConfigData()
        override.oidc.tenants = {
            "external": tenants["external"].model_copy(update={"enabled": False})
        }

        with with_context(override):
            with pytest.raises(HTTPException) as exc_info:
                await jwt_verify_service.verify_jwt(token_factory(), "external")
        assert exc_info.value.status_code == 401

    async def test_claim_names_are_configurable(
        self, jwt_verify_service: JwtVerificationService, token_factory
    ):
        override = ConfigData()
        override.jwt.claims = JWTClaimsConfig(preferred_username="nickname")

        with with_context(override):
            identity = await jwt_verify_service.verify_jwt(
                token_factory(nickname="ally"), "external"
            )

        assert identity.username == "ally"


class TestJwksService:
    @pytest.fixture
    def served_jwks(self, monkeypatch, jwks_data):
        """Serve the test JWKS through an httpx mock transport."""
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            doc = jwks_data.get(str(request.url))
            if doc is None:
                return httpx.Response(404)
            return httpx.Response(200, json=doc)

        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            jwks_module.httpx,
            "AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )
        return calls

    async def test_fetch_downloads_once_then_uses_cache(
        self, jwks_service: JwksService, tenants, jwks_data, served_jwks
    ):
        tenant = tenants["external"]

        first = await jwks_service.fetch_jwks(tenant)
        second = await jwks_service.fetch_jwks(tenant)

        assert first == jwks_data[tenant.jwks_uri]
        assert second == first
        assert served_jwks == [tenant.jwks_uri]

    async def test_fetch_failure_is_reported(
        self, jwks_service: JwksService, tenants, served_jwks
    ):
        tenant = tenants["external"].model_copy(
            update={"jwks_uri": "https://external.issuer.test/missing"}
        )

        with pytest.raises(HTTPException) as exc_info:
            await jwks_service.fetch_jwks(tenant)
        assert exc_info.value.status_code == 500

    def test_in_memory_cache(self):
        cache = JWKSCacheInMemory()
        cache.set_jwks("https://a/certs", {"keys": [{"kid": "1"}]})

        assert cache.get_jwks("https://a/certs") == {"keys": [{"kid": "1"}]}
        assert cache.get_jwks("https://b/certs") == {}
        cache.clear_jwks_cache()
        assert cache.get_jwks("https://a/certs") == {}
