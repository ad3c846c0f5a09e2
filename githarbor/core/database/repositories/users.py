"""
Users repository.

Looks users up by their personal access token for request authentication.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.users import Namespace, User
from .base import AsyncBaseRepository


class UserRepository(AsyncBaseRepository[User]):
    """Repository for user data access operations using SQLModel."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, User)

    async def find_by_token(self, token: str) -> Optional[User]:
        if not token:
            return None
        result = await self.session.execute(select(User).where(User.authentication_token == token))
        return result.scalars().first()

    async def find_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalars().first()


class NamespaceRepository(AsyncBaseRepository[Namespace]):
    """Repository for namespaces."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Namespace)

    async def find_by_path(self, path: str) -> Optional[Namespace]:
        result = await self.session.execute(select(Namespace).where(Namespace.path == path))
        return result.scalars().first()
