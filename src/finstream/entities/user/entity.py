"""User domain entity."""

from typing import Any

from pydantic import Field

from src.finstream.entities._base import Entity


class User(Entity):
    """A caller known to the system and their subscription state.

    ``external_identity_id`` is the subject asserted by the identity provider
    and the business key of the record.
    """

    external_identity_id: str = Field(description="Identity provider subject")
    username: str = Field(description="Display name taken from the token claims")
    email: str = Field(description="Email address taken from the token claims")
    subscribed: bool = Field(default=False, description="Subscription flag")

    def __eq__(self, other: Any) -> bool:
        """Compare users by business attributes, ignoring timestamps."""
        if not isinstance(other, User):
            return False

        return (
            self.id == other.id
            and self.external_identity_id == other.external_identity_id
            and self.username == other.username
            and self.email == other.email
            and self.subscribed == other.subscribed
        )

    def __hash__(self) -> int:
        """Hash based on business attributes, ignoring timestamps."""
        return hash((
            self.id,
            self.external_identity_id,
            self.username,
            self.email,
            self.subscribed,
        ))
