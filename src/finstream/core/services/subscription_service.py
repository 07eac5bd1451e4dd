from dataclasses import dataclass
from enum import StrEnum

from loguru import logger
from sqlmodel import Session

from src.finstream.core.exceptions import RequestError
from src.finstream.core.models.identity import IdentityContext
from src.finstream.entities.user import User, UserRepository


class SubscriptionOutcome(StrEnum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass(frozen=True)
class SubscriptionResult:
    user: User
    outcome: SubscriptionOutcome


class SubscriptionService:
    """Subscription state of the calling user, plus the read-only user views."""

    def __init__(self, db_session: Session):
        self._user_repo = UserRepository(db_session)

    def set_subscription(
        self, identity: IdentityContext, subscribed: bool
    ) -> SubscriptionResult:
        """Find or create the caller's user, set its flag and persist it.

        A user that already exists keeps its stored username and email; only
        a newly created user takes them from the caller's claims.
        """
        found = self._user_repo.find_or_new(identity)
        user = found.user.model_copy(update={"subscribed": subscribed})
        persisted = self._user_repo.persist(user)

        outcome = (
            SubscriptionOutcome.CREATED if found.created else SubscriptionOutcome.UPDATED
        )
        logger.info(
            "Subscription {} for user {}: subscribed={}",
            outcome,
            persisted.id,
            persisted.subscribed,
        )
        return SubscriptionResult(user=persisted, outcome=outcome)

    def list_users(self) -> list[User]:
        return self._user_repo.list_all()

    def get_current_user(self, identity: IdentityContext) -> User:
        user = self._user_repo.find_by_external_id(identity.subject)
        if user is None:
            raise RequestError(404, "User not Found")
        return user
