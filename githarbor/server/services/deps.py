"""
Route Dependencies.

Authentication by personal access token and the project and merge request
lookups shared by the project routes. Anything the viewer is not allowed to
see is reported as 404.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from githarbor.core.database import get_session
from githarbor.core.database.entities import MergeRequest, Project, User
from githarbor.core.database.repositories import MergeRequestRepository, ProjectRepository, UserRepository
from githarbor.server.core.constant import PRIVATE_TOKEN_HEADER, PRIVATE_TOKEN_PARAM

from .permissions import ProjectPolicy, load_policy

SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_current_user(
    session: SessionDep,
    header_token: Optional[str] = Header(default=None, alias=PRIVATE_TOKEN_HEADER),
    query_token: Optional[str] = Query(default=None, alias=PRIVATE_TOKEN_PARAM),
) -> Optional[User]:
    """Resolve the signed-in user; anonymous requests yield None."""
    token = header_token or query_token
    if not token:
        return None
    user = await UserRepository(session).find_by_token(token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid private token")
    return user


CurrentUserDep = Annotated[Optional[User], Depends(get_current_user)]


def not_found(what: str = "Not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=what)


@dataclass
class ProjectContext:
    """The project of the current route and what the viewer may do in it."""

    session: AsyncSession
    project: Project
    user: Optional[User]
    policy: ProjectPolicy

    def authorize(self, ability: str, subject: Optional[MergeRequest] = None) -> None:
        if not self.policy.can(ability, subject):
            raise not_found()

    @property
    def signed_in_user(self) -> User:
        if self.user is None:
            raise not_found()
        return self.user

    async def find_merge_request(self, iid: int) -> MergeRequest:
        """Merge request ``iid`` of this project, readable by the viewer."""
        merge_request = await MergeRequestRepository(self.session).find_by_iid(self.project.id, iid)
        if merge_request is None:
            raise not_found("Merge request not found")
        self.authorize("read_merge_request", merge_request)
        return merge_request


async def get_project_context(
    namespace_id: str,
    project_id: str,
    session: SessionDep,
    user: CurrentUserDep,
) -> ProjectContext:
    project = await ProjectRepository(session).find_by_full_path(namespace_id, project_id)
    if project is None:
        raise not_found("Project not found")
    policy = await load_policy(session, project, user)
    if not policy.can("read_project"):
        raise not_found("Project not found")
    return ProjectContext(session=session, project=project, user=user, policy=policy)


ProjectDep = Annotated[ProjectContext, Depends(get_project_context)]
