"""Verified caller identity."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Audience = Literal["external", "internal"]


class IdentityContext(BaseModel):
    """Claims of an already verified bearer token, handed to request handlers."""

    model_config = ConfigDict(frozen=True)

    subject: str = Field(description="Provider subject, used as externalIdentityId")
    username: str | None = Field(default=None, description="preferred_username claim")
    email: str | None = Field(default=None, description="email claim")
    audience: Audience = Field(description="Tenant the token was verified under")
    issuer: str = Field(description="Token issuer")
    claims: dict[str, Any] = Field(default_factory=dict, description="All claims")
