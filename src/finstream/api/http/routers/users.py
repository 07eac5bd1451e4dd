"""User subscription endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, StrictBool

from src.finstream.api.http.deps import (
    external_identity,
    get_subscription_service,
    internal_identity,
)
from src.finstream.api.http.errors import ErrorResponse
from src.finstream.core.models.identity import IdentityContext
from src.finstream.core.services import SubscriptionService
from src.finstream.entities.user import User

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


class SubscriptionRequest(BaseModel):
    subscribed: StrictBool


@router.post("/subscription", response_model=User)
def save_or_update_subscription(
    request: SubscriptionRequest,
    identity: IdentityContext = Depends(external_identity),
    service: SubscriptionService = Depends(get_subscription_service),
) -> User:
    """Set the caller's subscription flag, creating their user on first use."""
    return service.set_subscription(identity, request.subscribed).user


@router.get("/all", response_model=list[User])
def get_all_users(
    identity: IdentityContext = Depends(internal_identity),
    service: SubscriptionService = Depends(get_subscription_service),
) -> list[User]:
    return service.list_users()


@router.get("/me", response_model=User, responses={404: {"model": ErrorResponse}})
def get_current_user(
    identity: IdentityContext = Depends(external_identity),
    service: SubscriptionService = Depends(get_subscription_service),
) -> User:
    return service.get_current_user(identity)
