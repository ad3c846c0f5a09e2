"""
Project entity models.

A project couples a namespace path with a bare git repository on disk and
holds the membership table used by the permission checks.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Text

from githarbor.core.models.domain.enums import Visibility

from ..base import Base, utc_now


class Project(Base, table=True):
    """Entity for a hosted project.

    Table: projects
    """

    __tablename__ = "projects"
    __table_args__ = (UniqueConstraint("namespace_id", "path", name="uq_projects_namespace_path"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    namespace_id: int = Field(foreign_key="namespaces.id", index=True)
    path: str = Field(max_length=255)
    full_path: str = Field(max_length=511, unique=True, index=True)
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, sa_type=Text)
    visibility: str = Field(default=Visibility.private.value, max_length=16)
    repository_path: str = Field(max_length=1024)
    default_branch: str = Field(default="master", max_length=255)
    forked_from_project_id: Optional[int] = Field(default=None, index=True)
    only_allow_merge_if_build_succeeds: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def namespace_path(self) -> str:
        return self.full_path.rsplit("/", 1)[0]

    @property
    def is_fork(self) -> bool:
        return self.forked_from_project_id is not None

    def __repr__(self) -> str:
        return f"Project(id={self.id}, full_path={self.full_path})"


class ProjectMember(Base, table=True):
    """Entity for a user's membership in a project.

    Table: project_members
    """

    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="projects.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    access_level: int = Field()
    created_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"ProjectMember(project_id={self.project_id}, user_id={self.user_id}, access_level={self.access_level})"
