from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """Site owner account; email stays private to the owner."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(description="Session subject")
    display_name: str
    email: Optional[str] = None
    created_at: datetime


class PublicOwner(BaseModel):
    """What anonymous readers of a site may see about its owner."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: str

    @classmethod
    def from_user(cls, user: User) -> "PublicOwner":
        return cls(user_id=user.user_id, display_name=user.display_name)
