"""Unit tests for the project, merge request, pipeline and user repositories.

Tests run against in-memory SQLite through the shared ``factory`` fixture.
"""

from __future__ import annotations

import pytest
from sqlmodel import select

from githarbor.core.database.entities import MergeRequest, Pipeline, ProjectMember
from githarbor.core.database.repositories import (
    MergeRequestRepository,
    NamespaceRepository,
    PipelineRepository,
    ProjectRepository,
    QueryBuilder,
    UserRepository,
)
from githarbor.core.models.domain.enums import AccessLevel, MergeRequestState, PipelineStatus

pytestmark = pytest.mark.asyncio


class TestProjectRepository:
    """Tests for ProjectRepository."""

    async def test_find_by_full_path(self, factory):
        namespace = await factory.namespace(path="gitlab-org")
        project = await factory.project(namespace, path="gitlabhq", empty=True)
        repository = ProjectRepository(factory.session)

        assert (await repository.find_by_full_path("gitlab-org", "gitlabhq")).id == project.id
        assert await repository.find_by_full_path("gitlab-org", "nope") is None
        assert (await repository.get_namespace(project)).path == "gitlab-org"

    async def test_add_member_creates_then_updates(self, factory):
        user = await factory.user()
        project = await factory.project(empty=True)
        repository = ProjectRepository(factory.session)

        await repository.add_member(project, user.id, AccessLevel.reporter)
        member = await repository.add_member(project, user.id, AccessLevel.master)

        assert member.access_level == AccessLevel.master
        assert await repository.member_access_level(project.id, user.id) == AccessLevel.master
        members = await AsyncList(factory.session).of(ProjectMember, project_id=project.id)
        assert len(members) == 1

    async def test_truncate_team(self, factory):
        project = await factory.project(empty=True)
        for _ in range(2):
            await factory.member(project, await factory.user(), AccessLevel.developer)

        await ProjectRepository(factory.session).truncate_team(project)

        assert await AsyncList(factory.session).of(ProjectMember, project_id=project.id) == []

    async def test_destroy_removes_merge_requests_and_pipelines(self, factory):
        developer = await factory.user()
        project = await factory.project()
        await factory.member(project, developer, AccessLevel.developer)
        merge_request = await factory.merge_request(project, developer)
        await factory.pipeline(project, sha=merge_request.diff_head_sha, ref="fix")

        await ProjectRepository(factory.session).destroy(project)

        assert await ProjectRepository(factory.session).get_by_id(project.id) is None
        assert await AsyncList(factory.session).of(MergeRequest) == []
        assert await AsyncList(factory.session).of(Pipeline) == []
        assert await AsyncList(factory.session).of(ProjectMember) == []

    async def test_destroying_a_fork_keeps_its_merge_requests(self, factory):
        developer = await factory.user()
        project = await factory.project()
        await factory.member(project, developer, AccessLevel.developer)
        fork = await factory.project(await factory.namespace(owner=developer), forked_from=project)
        merge_request = await factory.merge_request(project, developer, source_project=fork, source_branch="feature")

        await ProjectRepository(factory.session).destroy(fork)

        kept = await MergeRequestRepository(factory.session).get_by_id(merge_request.id)
        assert kept is not None
        assert kept.source_project_id is None
        assert kept.target_project_id == project.id


class TestMergeRequestRepository:
    """Tests for MergeRequestRepository."""

    async def test_find_by_iid_and_next_iid(self, factory):
        developer = await factory.user()
        project = await factory.project()
        other = await factory.project()
        await factory.member(project, developer, AccessLevel.developer)
        repository = MergeRequestRepository(factory.session)

        assert await repository.next_iid(project.id) == 1
        merge_request = await factory.merge_request(project, developer)

        assert (await repository.find_by_iid(project.id, 1)).id == merge_request.id
        assert await repository.find_by_iid(other.id, 1) is None
        assert await repository.next_iid(project.id) == 2
        assert await repository.next_iid(other.id) == 1

    async def test_list_for_project_filters_by_state(self, factory):
        developer = await factory.user()
        project = await factory.project()
        await factory.member(project, developer, AccessLevel.developer)
        opened = await factory.merge_request(project, developer, source_branch="fix")
        closed = await factory.merge_request(project, developer, source_branch="feature")
        reopened = await factory.merge_request(project, developer, source_branch="remove-submodule")
        closed.state = MergeRequestState.closed.value
        reopened.state = MergeRequestState.reopened.value
        await factory.session.commit()
        repository = MergeRequestRepository(factory.session)

        assert {mr.id for mr in await repository.list_for_project(project.id)} == {opened.id, reopened.id}
        assert [mr.id for mr in await repository.list_for_project(project.id, "closed")] == [closed.id]
        assert await repository.list_for_project(project.id, "merged") == []
        all_ids = [mr.id for mr in await repository.list_for_project(project.id, "all")]
        assert all_ids == [reopened.id, closed.id, opened.id]
        assert len(await repository.list_for_project(project.id, "all", limit=1, offset=1)) == 1

    async def test_find_open_for_branches(self, factory):
        developer = await factory.user()
        project = await factory.project()
        await factory.member(project, developer, AccessLevel.developer)
        merge_request = await factory.merge_request(project, developer)
        repository = MergeRequestRepository(factory.session)
        branches = {
            "source_project_id": project.id,
            "source_branch": "fix",
            "target_project_id": project.id,
            "target_branch": "master",
        }

        assert (await repository.find_open_for_branches(**branches)).id == merge_request.id
        assert await repository.find_open_for_branches(**branches, exclude_ids=[merge_request.id, None]) is None

        merge_request.state = MergeRequestState.merged.value
        await factory.session.commit()
        assert await repository.find_open_for_branches(**branches) is None

    async def test_list_open_from_source(self, factory):
        developer = await factory.user()
        project = await factory.project()
        await factory.member(project, developer, AccessLevel.developer)
        merge_request = await factory.merge_request(project, developer)
        await factory.merge_request(project, developer, source_branch="feature")

        found = await MergeRequestRepository(factory.session).list_open_from_source(project.id, "fix")

        assert [mr.id for mr in found] == [merge_request.id]


class TestPipelineRepository:
    """Tests for PipelineRepository."""

    async def test_latest_for_and_find_for_project(self, factory):
        project = await factory.project(empty=True)
        other = await factory.project(empty=True)
        await factory.pipeline(project, sha="a" * 40, ref="fix", status=PipelineStatus.failed)
        latest = await factory.pipeline(project, sha="a" * 40, ref="fix")
        repository = PipelineRepository(factory.session)

        assert (await repository.latest_for(project.id, "fix", "a" * 40)).id == latest.id
        assert await repository.latest_for(project.id, "fix", "b" * 40) is None
        assert (await repository.find_for_project(project.id, latest.id)).id == latest.id
        assert await repository.find_for_project(other.id, latest.id) is None


class TestUserRepository:
    """Tests for UserRepository and NamespaceRepository."""

    async def test_find_by_token(self, factory):
        user = await factory.user("root")
        repository = UserRepository(factory.session)

        assert (await repository.find_by_token("token-root")).id == user.id
        assert await repository.find_by_token("") is None
        assert await repository.find_by_token("wrong") is None
        assert (await repository.find_by_username("root")).id == user.id

    async def test_namespace_by_path(self, factory):
        namespace = await factory.namespace(path="gitlab-org")

        assert (await NamespaceRepository(factory.session).find_by_path("gitlab-org")).id == namespace.id


class TestBaseRepository:
    """Tests for the shared CRUD helpers."""

    async def test_list_with_filters_and_delete(self, factory):
        project = await factory.project(empty=True)
        first = await factory.pipeline(project, sha="a" * 40, ref="fix")
        await factory.pipeline(project, sha="b" * 40, ref="master", status=PipelineStatus.success)
        repository = PipelineRepository(factory.session)

        assert [p.id for p in await repository.list(filters={"ref": "fix", "unknown": 1, "sha": None})] == [first.id]
        assert len(await repository.list(filters={"status": ["pending", "success"]})) == 2
        assert len(await repository.list(limit=1)) == 1

        assert await repository.delete(first.id)
        assert not await repository.delete(first.id)

    async def test_query_builder_skips_unknown_columns(self):
        stmt = QueryBuilder.apply_filters(select(Pipeline), Pipeline, {"nope": 1})

        assert "WHERE" not in str(stmt)


class AsyncList:
    """Small helper listing rows of an entity with equality filters."""

    def __init__(self, session) -> None:
        self.session = session

    async def of(self, model, **filters):
        stmt = QueryBuilder.apply_filters(select(model), model, filters)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
