"""User repository for data access operations."""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from src.finstream.core.exceptions import InvalidInputError, PersistenceError
from src.finstream.core.models.identity import IdentityContext
from src.finstream.entities.user.entity import User
from src.finstream.entities.user.table import UserTable


@dataclass(frozen=True)
class FindOrNewResult:
    """Outcome of :meth:`UserRepository.find_or_new`."""

    user: User
    created: bool


class UserRepository:
    """Data-access layer for users.

    Every SQLAlchemy failure is rolled back and re-raised as
    :class:`PersistenceError`.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_external_id(self, external_id: str) -> User | None:
        """Return the user owning ``external_id``, or None if there is none."""
        statement = select(UserTable).where(
            UserTable.external_identity_id == external_id
        )
        try:
            row = self._session.exec(statement).first()
        except SQLAlchemyError as exc:
            self._rollback()
            raise PersistenceError("Failed to look up user") from exc
        if row is None:
            return None
        return User.model_validate(row, from_attributes=True)

    def list_all(self) -> list[User]:
        """Return every stored user."""
        statement = select(UserTable).order_by(UserTable.id)
        try:
            rows = self._session.exec(statement).all()
        except SQLAlchemyError as exc:
            self._rollback()
            raise PersistenceError("Failed to list users") from exc
        return [User.model_validate(row, from_attributes=True) for row in rows]

    def find_or_new(self, identity: IdentityContext) -> FindOrNewResult:
        """Find the caller's user, or build an unsaved one from their claims.

        An existing user is returned unchanged: username and email are only
        taken from the claims when the user is new.
        """
        existing = self.find_by_external_id(identity.subject)
        if existing is not None:
            return FindOrNewResult(user=existing, created=False)

        if not identity.username:
            raise InvalidInputError("Token is missing the preferred_username claim")
        if not identity.email:
            raise InvalidInputError("Token is missing the email claim")

        user = User(
            external_identity_id=identity.subject,
            username=identity.username,
            email=identity.email,
        )
        return FindOrNewResult(user=user, created=True)

    def persist(self, user: User) -> User:
        """Insert ``user`` if it has no id yet, otherwise update its row.

        Returns the stored user with ``id``, ``created_at`` and ``updated_at``
        as assigned by the store.
        """
        try:
            if user.id is None:
                row = UserTable(
                    external_identity_id=user.external_identity_id,
                    username=user.username,
                    email=user.email,
                    subscribed=user.subscribed,
                )
                self._session.add(row)
            else:
                row = self._session.get(UserTable, user.id)
                if row is None:
                    raise PersistenceError(f"User {user.id} no longer exists")
                row.username = user.username
                row.email = user.email
                row.subscribed = user.subscribed
                self._session.add(row)

            self._session.commit()
            self._session.refresh(row)
        except SQLAlchemyError as exc:
            self._rollback()
            raise PersistenceError("Failed to persist user") from exc

        logger.debug("Persisted user {} ({})", row.id, row.external_identity_id)
        return User.model_validate(row, from_attributes=True)

    def _rollback(self) -> None:
        try:
            self._session.rollback()
        except SQLAlchemyError:
            logger.warning("Rollback failed after a database error")
