from datetime import datetime

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlmodel import Field, SQLModel


class Entity(BaseModel):
    """Base entity with store-assigned identifier and timestamps.

    ``id``, ``created_at`` and ``updated_at`` stay ``None`` until the entity
    has been persisted. Serialised with camelCase field names.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: int | None = PydanticField(
        default=None, description="Store-assigned surrogate key"
    )
    created_at: datetime | None = PydanticField(default=None)
    updated_at: datetime | None = PydanticField(default=None)


class EntityTable(SQLModel, table=False):
    """Base table with autoincrement key and store-managed timestamps."""

    id: int | None = Field(default=None, primary_key=True)

    # both timestamps come from the store clock; None is left out of the INSERT
    created_at: datetime | None = Field(
        default=None,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    updated_at: datetime | None = Field(
        default=None,
        nullable=False,
        sa_column_kwargs={
            "server_default": sa.func.now(),
            "onupdate": sa.func.now(),
        },
    )
