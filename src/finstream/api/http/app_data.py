from dataclasses import dataclass

from src.finstream.core.services import (
    DbSessionService,
    JWKSCacheInMemory,
    JwksService,
    JwtVerificationService,
)


@dataclass
class ApplicationDependencies:
    jwks_cache: JWKSCacheInMemory
    jwks_service: JwksService
    jwt_verify_service: JwtVerificationService
    database_service: DbSessionService
