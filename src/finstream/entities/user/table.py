"""User database table model."""

from sqlmodel import Field

from src.finstream.entities._base import EntityTable


class UserTable(EntityTable, table=True):
    """Database persistence model for users.

    This represents how the User entity is stored in the database.
    It's separate from the domain entity to maintain clean architecture
    while keeping related code together.
    """

    __tablename__ = "users"

    external_identity_id: str = Field(nullable=False, unique=True, index=True)
    username: str = Field(nullable=False)
    email: str = Field(nullable=False)
    subscribed: bool = Field(default=False, nullable=False)
