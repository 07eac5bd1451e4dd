"""JWT service package."""

from .jwks import JWKSCache, JWKSCacheInMemory, JwksService
from .jwt_utils import preview_jwt
from .jwt_verify import JwtVerificationService

__all__ = [
    "JWKSCache",
    "JWKSCacheInMemory",
    "JwksService",
    "JwtVerificationService",
    "preview_jwt",
]
