"""Initial schema for GitHarbor

Revision ID: 20261017_000000
Revises: None
Create Date: 2026-10-17 00:00:00.000000

Creates the tables of the merge request service:
- users and namespaces
- projects and project members
- merge requests
- CI pipelines

Revision format: YYYYMMDD_HHMMSS_description

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261017_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""

    # Create users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("authentication_token", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_users_username", "username", unique=True),
        sa.Index("ix_users_authentication_token", "authentication_token", unique=True),
    )

    # Create namespaces table
    op.create_table(
        "namespaces",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("path", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_namespaces_path", "path", unique=True),
        sa.Index("ix_namespaces_owner_id", "owner_id"),
    )

    # Create projects table
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("namespace_id", sa.Integer(), sa.ForeignKey("namespaces.id"), nullable=False),
        sa.Column("path", sa.String(255), nullable=False),
        sa.Column("full_path", sa.String(511), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("visibility", sa.String(16), nullable=False, server_default="private"),
        sa.Column("repository_path", sa.String(1024), nullable=False),
        sa.Column("default_branch", sa.String(255), nullable=False, server_default="master"),
        sa.Column("forked_from_project_id", sa.Integer(), nullable=True),
        sa.Column("only_allow_merge_if_build_succeeds", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("namespace_id", "path", name="uq_projects_namespace_path"),
        sa.Index("ix_projects_namespace_id", "namespace_id"),
        sa.Index("ix_projects_full_path", "full_path", unique=True),
        sa.Index("ix_projects_forked_from_project_id", "forked_from_project_id"),
    )

    # Create project_members table
    op.create_table(
        "project_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("access_level", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
        sa.Index("ix_project_members_project_id", "project_id"),
        sa.Index("ix_project_members_user_id", "user_id"),
    )

    # Create merge_requests table
    op.create_table(
        "merge_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("iid", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("state", sa.String(16), nullable=False, server_default="opened"),
        sa.Column("merge_status", sa.String(32), nullable=False, server_default="unchecked"),
        sa.Column("source_project_id", sa.Integer(), nullable=True),
        sa.Column("source_branch", sa.String(255), nullable=False),
        sa.Column("target_project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("target_branch", sa.String(255), nullable=False),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("merge_user_id", sa.Integer(), nullable=True),
        sa.Column("merge_when_build_succeeds", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("merge_params", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("merge_error", sa.Text(), nullable=True),
        sa.Column("merge_commit_sha", sa.String(40), nullable=True),
        sa.Column("diff_base_sha", sa.String(40), nullable=True),
        sa.Column("diff_start_sha", sa.String(40), nullable=True),
        sa.Column("diff_head_sha", sa.String(40), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("target_project_id", "iid", name="uq_merge_requests_target_iid"),
        sa.Index("ix_merge_requests_iid", "iid"),
        sa.Index("ix_merge_requests_state", "state"),
        sa.Index("ix_merge_requests_source_project_id", "source_project_id"),
        sa.Index("ix_merge_requests_source_branch", "source_branch"),
        sa.Index("ix_merge_requests_target_project_id", "target_project_id"),
        sa.Index("ix_merge_requests_author_id", "author_id"),
    )

    # Create ci_pipelines table
    op.create_table(
        "ci_pipelines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("sha", sa.String(40), nullable=False),
        sa.Column("ref", sa.String(255), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="created"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_ci_pipelines_project_id", "project_id"),
        sa.Index("ix_ci_pipelines_sha", "sha"),
        sa.Index("ix_ci_pipelines_ref", "ref"),
        sa.Index("ix_ci_pipelines_status", "status"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("ci_pipelines")
    op.drop_table("merge_requests")
    op.drop_table("project_members")
    op.drop_table("projects")
    op.drop_table("namespaces")
    op.drop_table("users")
