"""FastAPI dependency implementations."""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import Depends, HTTPException, Request
from sqlmodel import Session

from src.finstream.api.http.app_data import ApplicationDependencies
from src.finstream.core.models.identity import Audience, IdentityContext
from src.finstream.core.services import (
    DbSessionService,
    JwtVerificationService,
    SubscriptionService,
)


def get_database_service(request: Request) -> DbSessionService:
    """Get the database service instance."""
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    return app_deps.database_service


def get_db_session(
    database_service: DbSessionService = Depends(get_database_service),
) -> Iterator[Session]:
    """Yield a database session that is closed when the request ends."""
    session = database_service.get_session()
    try:
        yield session
    finally:
        session.close()


def get_jwt_verify_service(request: Request) -> JwtVerificationService:
    """Get the JWT verification service instance."""
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    return app_deps.jwt_verify_service


def get_subscription_service(
    db: Session = Depends(get_db_session),
) -> SubscriptionService:
    return SubscriptionService(db)


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Missing Bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_header.split(" ", 1)[1].strip()


def require_identity(audience: Audience):
    """Create a dependency that verifies the bearer token for ``audience``."""

    async def dep(
        request: Request,
        jwt_verify: JwtVerificationService = Depends(get_jwt_verify_service),
    ) -> IdentityContext:
        token = _bearer_token(request)
        return await jwt_verify.verify_jwt(token, audience)

    return dep


external_identity = require_identity("external")
internal_identity = require_identity("internal")
