"""Project permission decisions.

``ProjectPolicy`` answers "may this user do X in this project" for the HTTP
routes and services. The viewer's effective access level is loaded once per
request by ``load_policy``; every check after that is synchronous.

Effective access level
----------------------

- the membership level from ``project_members``,
- ``owner`` for the owner of the project's namespace,
- ``owner`` for administrators.

Abilities
---------

- ``read_project``: members, anyone for public projects, signed-in users for
  internal projects, administrators.
- ``read_merge_request``, ``read_pipeline``: reporter and above, or anyone who
  can read a public project.
- ``create_merge_request``, ``push_code``, ``create_pipeline``,
  ``update_pipeline``: developer and above.
- ``update_merge_request``: developer and above, or the merge request author.
- ``destroy_merge_request``: namespace owner or administrator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from githarbor.core.database.repositories import ProjectRepository
from githarbor.core.models.domain.enums import AccessLevel, Visibility

if TYPE_CHECKING:
    from githarbor.core.database.entities import MergeRequest, Project, User


class ProjectPolicy:
    """Permission checks of one user in one project."""

    def __init__(
        self,
        project: "Project",
        user: Optional["User"],
        *,
        member_level: Optional[int] = None,
        namespace_owner: bool = False,
    ) -> None:
        self.project = project
        self.user = user
        self.member_level = member_level
        self.namespace_owner = namespace_owner
        self._abilities: Dict[str, Callable[..., bool]] = {
            "read_project": self.can_read_project,
            "read_merge_request": self.can_read_merge_request,
            "read_pipeline": self.can_read_merge_request,
            "create_merge_request": self.is_developer,
            "push_code": self.is_developer,
            "create_pipeline": self.is_developer,
            "update_pipeline": self.is_developer,
            "update_merge_request": self.can_update_merge_request,
            "destroy_merge_request": self.can_destroy_merge_request,
        }

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.admin)

    @property
    def access_level(self) -> Optional[int]:
        """Effective access level, None for non-members."""
        if self.is_admin or self.namespace_owner:
            return int(AccessLevel.owner)
        return self.member_level

    def has_level(self, level: AccessLevel) -> bool:
        return self.access_level is not None and self.access_level >= level

    def is_developer(self) -> bool:
        return self.has_level(AccessLevel.developer)

    def can_read_project(self) -> bool:
        if self.access_level is not None:
            return True
        if self.project.visibility == Visibility.public.value:
            return True
        return self.project.visibility == Visibility.internal.value and self.user is not None

    def can_read_merge_request(self) -> bool:
        if self.has_level(AccessLevel.reporter):
            return True
        return self.project.visibility == Visibility.public.value

    def can_update_merge_request(self, merge_request: Optional["MergeRequest"] = None) -> bool:
        if self.is_developer():
            return True
        return (
            merge_request is not None
            and self.user is not None
            and merge_request.author_id == self.user.id
            and self.can_read_merge_request()
        )

    def can_destroy_merge_request(self) -> bool:
        return self.is_admin or self.namespace_owner

    def can(self, ability: str, subject: Optional["MergeRequest"] = None) -> bool:
        """
        Evaluate a named ability.

        Args:
            ability: Ability name such as ``read_merge_request``.
            subject: Merge request the ability is checked against, when relevant.

        Returns:
            True when the user has the ability. Unknown abilities are denied.
        """
        check = self._abilities.get(ability)
        if check is None:
            return False
        if ability == "update_merge_request":
            return check(subject)
        return check()


async def load_policy(session: AsyncSession, project: "Project", user: Optional["User"]) -> ProjectPolicy:
    """Load the membership data needed to build a ``ProjectPolicy``."""
    if user is None:
        return ProjectPolicy(project, None)

    projects = ProjectRepository(session)
    namespace = await projects.get_namespace(project)
    member_level = await projects.member_access_level(project.id, user.id)
    return ProjectPolicy(
        project,
        user,
        member_level=member_level,
        namespace_owner=bool(namespace and namespace.owner_id == user.id),
    )


async def can_be_merged_by(session: AsyncSession, merge_request: "MergeRequest", user: Optional["User"]) -> bool:
    """Whether ``user`` may push to the merge request's target project."""
    project = await ProjectRepository(session).get_by_id(merge_request.target_project_id)
    if project is None:
        return False
    policy = await load_policy(session, project, user)
    return policy.can("push_code")
