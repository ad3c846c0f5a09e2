"""
User and namespace entity models.

Users authenticate with a personal access token. Every project lives in a
namespace; the namespace owner is the implicit owner of its projects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field

from ..base import Base, utc_now


class User(Base, table=True):
    """Entity for a registered user.

    Table: users
    """

    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(max_length=255, unique=True, index=True)
    name: str = Field(max_length=255)
    email: str = Field(max_length=255)
    admin: bool = Field(default=False)
    authentication_token: Optional[str] = Field(default=None, max_length=64, unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"User(id={self.id}, username={self.username})"


class Namespace(Base, table=True):
    """Entity for a user or group namespace.

    Table: namespaces
    """

    __tablename__ = "namespaces"

    id: Optional[int] = Field(default=None, primary_key=True)
    path: str = Field(max_length=255, unique=True, index=True)
    name: str = Field(max_length=255)
    owner_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"Namespace(id={self.id}, path={self.path})"
