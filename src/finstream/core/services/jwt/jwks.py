from abc import ABC, abstractmethod
from typing import Any

import httpx
from cachetools import TTLCache
from fastapi import HTTPException
from loguru import logger

from src.finstream.runtime.config.config_data import TenantConfig


class JWKSCache(ABC):
    @abstractmethod
    def get_jwks(self, jwks_uri: str) -> dict[str, Any]:
        """
        Get the cached JWKS for ``jwks_uri``.

        Returns:
            JWKS dictionary, empty when nothing is cached
        """
        raise NotImplementedError

    @abstractmethod
    def set_jwks(self, jwks_uri: str, jwks: dict[str, Any]) -> None:
        """Cache the JWKS downloaded from ``jwks_uri``."""
        raise NotImplementedError

    @abstractmethod
    def clear_jwks_cache(self) -> None:
        """Clear the JWKS cache."""
        raise NotImplementedError


class JWKSCacheInMemory(JWKSCache):
    def __init__(self, maxsize: int = 10, ttl: int = 3600) -> None:
        self._cache: TTLCache[str, dict[str, Any]] = TTLCache(maxsize=maxsize, ttl=ttl)

    def get_jwks(self, jwks_uri: str) -> dict[str, Any]:
        return self._cache.get(jwks_uri, {})

    def set_jwks(self, jwks_uri: str, jwks: dict[str, Any]) -> None:
        self._cache[jwks_uri] = jwks

    def clear_jwks_cache(self) -> None:
        self._cache.clear()


class JwksService:
    def __init__(self, cache: JWKSCache) -> None:
        self._cache = cache

    async def fetch_jwks(self, tenant: TenantConfig) -> dict[str, Any]:
        """Return the tenant's signing keys, downloading them on a cache miss."""
        jwks_url = tenant.jwks_uri

        if not jwks_url:
            raise HTTPException(
                status_code=401, detail="Tenant has no JWKS URI configured"
            )

        jwks = self._cache.get_jwks(jwks_url)
        if jwks:
            return jwks

        logger.info("Fetching JWKS from {}", jwks_url)
        try:
            async with httpx.AsyncClient(timeout=5) as client:
                resp = await client.get(jwks_url)
                resp.raise_for_status()
                jwks = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise HTTPException(
                status_code=500, detail="Failed to fetch JWKS"
            ) from exc

        self._cache.set_jwks(jwks_url, jwks)
        return jwks
