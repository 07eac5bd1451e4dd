"""Core services exports."""

# Database Service
from .database.db_session import DbSessionService

# JWT Services
from .jwt.jwks import JWKSCache, JWKSCacheInMemory, JwksService
from .jwt.jwt_verify import JwtVerificationService

# Subscription Services
from .subscription_service import (
    SubscriptionOutcome,
    SubscriptionResult,
    SubscriptionService,
)

__all__ = [
    # JWT Services
    "JWKSCache",
    "JWKSCacheInMemory",
    "JwksService",
    "JwtVerificationService",
    # Subscription Services
    "SubscriptionOutcome",
    "SubscriptionResult",
    "SubscriptionService",
    # Database Service
    "DbSessionService",
]
