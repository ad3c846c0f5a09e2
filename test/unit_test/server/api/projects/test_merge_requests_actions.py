"""
Tests for the merge request actions: create, update, destroy, merge,
merge when the build succeeds, WIP removal and the CI status widget.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from githarbor.core.database.repositories import MergeRequestRepository, ProjectRepository
from githarbor.core.models.domain.enums import AccessLevel, MergeRequestState, PipelineStatus
from githarbor.server.api.projects.merge_requests import DELETED_NOTICE, WIP_REMOVED_NOTICE
from githarbor.server.routing import merge_request_path, merge_requests_path

pytestmark = pytest.mark.asyncio

MERGE_WORKER = "githarbor.server.api.projects.merge_requests.MergeWorker.perform_async"


@pytest_asyncio.fixture
async def setup(factory, sign_in):
    user = await factory.user("john")
    project = await factory.project(path="gitlabhq")
    await factory.member(project, user, AccessLevel.master)
    merge_request = await factory.merge_request(project, user, title="Set LANG for popen")
    sign_in(user)
    return SimpleNamespace(user=user, project=project, merge_request=merge_request)


class TestCreate:
    async def test_create_redirects_to_the_new_merge_request(self, client, session, setup):
        response = await client.post(
            merge_requests_path(setup.project),
            json={"merge_request": {"source_branch": "feature", "target_branch": "master", "title": "Add feature"}},
        )

        assert response.status_code == 302
        assert response.headers["location"] == f"{merge_requests_path(setup.project)}/2"
        merge_request = await MergeRequestRepository(session).find_by_iid(setup.project.id, 2)
        assert merge_request.title == "Add feature"
        assert merge_request.author_id == setup.user.id
        assert merge_request.diff_head_sha is not None

    async def test_create_duplicate_is_rejected(self, client, setup):
        response = await client.post(
            merge_requests_path(setup.project),
            json={"merge_request": {"source_branch": "fix", "target_branch": "master"}},
        )

        assert response.status_code == 422
        assert response.json()["errors"] == ["This merge request already exists: !1"]

    async def test_create_with_missing_branch_is_rejected(self, client, setup):
        response = await client.post(
            merge_requests_path(setup.project),
            json={"merge_request": {"source_branch": "nope", "target_branch": "master"}},
        )

        assert response.status_code == 422
        assert 'Source branch "nope" does not exist' in response.json()["errors"]

    async def test_create_requires_sign_in(self, client, sign_in, setup):
        sign_in(None)
        response = await client.post(
            merge_requests_path(setup.project),
            json={"merge_request": {"source_branch": "feature", "target_branch": "master"}},
        )
        assert response.status_code == 404


class TestUpdate:
    async def test_close(self, client, session, setup):
        response = await client.put(
            merge_request_path(setup.project, setup.merge_request),
            json={"merge_request": {"state_event": "close"}},
        )

        assert response.status_code == 302
        assert response.headers["location"] == merge_request_path(setup.project, setup.merge_request)
        await session.refresh(setup.merge_request)
        assert setup.merge_request.state == MergeRequestState.closed.value

    async def test_close_after_the_source_fork_was_deleted(self, client, session, factory, setup):
        namespace = await factory.namespace(owner=setup.user)
        fork = await factory.project(namespace, path="gitlabhq", forked_from=setup.project)
        merge_request = await factory.merge_request(setup.project, setup.user, source_project=fork, source_branch="feature")
        await ProjectRepository(session).destroy(fork)

        response = await client.put(
            merge_request_path(setup.project, merge_request),
            json={"merge_request": {"state_event": "close"}},
        )

        assert response.status_code == 302
        await session.refresh(merge_request)
        assert merge_request.state == MergeRequestState.closed.value
        assert merge_request.source_project_id is None

    async def test_edit_title(self, client, session, setup):
        response = await client.put(
            merge_request_path(setup.project, setup.merge_request),
            json={"merge_request": {"title": "Popen sets LANG"}},
        )

        assert response.status_code == 302
        await session.refresh(setup.merge_request)
        assert setup.merge_request.title == "Popen sets LANG"

    async def test_reopening_an_open_merge_request_is_rejected(self, client, setup):
        response = await client.put(
            merge_request_path(setup.project, setup.merge_request),
            json={"merge_request": {"state_event": "reopen"}},
        )

        assert response.status_code == 422
        assert response.json()["event"] == "reopen"

    async def test_unknown_state_event_is_rejected(self, client, setup):
        response = await client.put(
            merge_request_path(setup.project, setup.merge_request),
            json={"merge_request": {"state_event": "explode"}},
        )
        assert response.status_code == 422

    async def test_reporter_cannot_update(self, client, factory, sign_in, setup):
        reporter = await factory.user()
        await factory.member(setup.project, reporter, AccessLevel.reporter)
        sign_in(reporter)

        response = await client.put(
            merge_request_path(setup.project, setup.merge_request),
            json={"merge_request": {"state_event": "close"}},
        )

        assert response.status_code == 404


class TestDestroy:
    async def test_master_cannot_destroy(self, client, setup):
        response = await client.delete(merge_request_path(setup.project, setup.merge_request))
        assert response.status_code == 404

    async def test_namespace_owner_destroys_and_gets_a_notice(self, client, session, factory, sign_in):
        owner = await factory.user("owner")
        namespace = await factory.namespace(owner=owner)
        project = await factory.project(namespace)
        merge_request = await factory.merge_request(project, owner)
        sign_in(owner)

        response = await client.delete(merge_request_path(project, merge_request))

        assert response.status_code == 302
        assert response.headers["location"] == merge_requests_path(project)
        assert await MergeRequestRepository(session).find_by_iid(project.id, merge_request.iid) is None

        client.cookies.set("session", response.cookies["session"])
        listing = await client.get(merge_requests_path(project))
        assert DELETED_NOTICE in listing.text

    async def test_admin_can_destroy(self, client, factory, sign_in, setup):
        admin = await factory.user("root", admin=True)
        sign_in(admin)

        response = await client.delete(merge_request_path(setup.project, setup.merge_request))

        assert response.status_code == 302


class TestMerge:
    def url(self, setup):
        return merge_request_path(setup.project, setup.merge_request, "/merge")

    async def test_reporter_gets_not_found(self, client, factory, sign_in, setup):
        reporter = await factory.user()
        await factory.member(setup.project, reporter, AccessLevel.reporter)
        sign_in(reporter)

        response = await client.post(self.url(setup), json={"sha": setup.merge_request.diff_head_sha})

        assert response.status_code == 404

    async def test_push_access_to_the_target_project_is_required(self, client, setup):
        can_be_merged_by = AsyncMock(return_value=False)
        with patch("githarbor.server.api.projects.merge_requests.can_be_merged_by", can_be_merged_by):
            with patch(MERGE_WORKER) as perform_async:
                response = await client.post(self.url(setup), json={"sha": setup.merge_request.diff_head_sha})

        assert response.status_code == 404
        perform_async.assert_not_called()
        _, merge_request, user = can_be_merged_by.await_args.args
        assert (merge_request.id, user.id) == (setup.merge_request.id, setup.user.id)

    async def test_work_in_progress_fails(self, client, session, setup):
        setup.merge_request.title = "WIP: Set LANG for popen"
        await session.commit()

        with patch(MERGE_WORKER) as perform_async:
            response = await client.post(self.url(setup), json={"sha": setup.merge_request.diff_head_sha})

        assert response.json() == {"status": "failed"}
        perform_async.assert_not_called()

    async def test_sha_mismatch(self, client, setup):
        with patch(MERGE_WORKER) as perform_async:
            response = await client.post(self.url(setup), json={"sha": "1234abcd"})

        assert response.json() == {"status": "sha_mismatch"}
        perform_async.assert_not_called()

    async def test_success_hands_the_merge_to_the_worker(self, client, setup):
        with patch(MERGE_WORKER) as perform_async:
            response = await client.post(
                self.url(setup),
                json={"sha": setup.merge_request.diff_head_sha, "should_remove_source_branch": True},
            )

        assert response.status_code == 200
        assert response.json() == {"status": "success"}
        perform_async.assert_called_once_with(
            setup.merge_request.id, setup.user.id, {"should_remove_source_branch": True}
        )

    async def test_conflicting_merge_request_fails(self, client, factory, setup):
        conflicting = await factory.merge_request(setup.project, setup.user, source_branch="conflict")

        with patch(MERGE_WORKER) as perform_async:
            response = await client.post(
                merge_request_path(setup.project, conflicting, "/merge"), json={"sha": conflicting.diff_head_sha}
            )

        assert response.json() == {"status": "failed"}
        perform_async.assert_not_called()

    async def test_merge_when_build_succeeds_with_active_pipeline(self, client, session, factory, setup):
        await factory.pipeline(
            setup.project, sha=setup.merge_request.diff_head_sha, ref="fix", status=PipelineStatus.running
        )

        with patch(MERGE_WORKER) as perform_async:
            response = await client.post(
                self.url(setup),
                json={"sha": setup.merge_request.diff_head_sha, "merge_when_build_succeeds": True},
            )

        assert response.json() == {"status": "merge_when_build_succeeds"}
        perform_async.assert_not_called()
        await session.refresh(setup.merge_request)
        assert setup.merge_request.merge_when_build_succeeds is True
        assert setup.merge_request.merge_user_id == setup.user.id

    async def test_merge_when_build_succeeds_calls_the_service(self, client, factory, setup):
        await factory.pipeline(
            setup.project, sha=setup.merge_request.diff_head_sha, ref="fix", status=PipelineStatus.pending
        )
        service = "githarbor.server.api.projects.merge_requests.MergeWhenBuildSucceedsService"

        with patch(service) as service_class:
            service_class.return_value.execute = AsyncMock()
            response = await client.post(
                self.url(setup),
                json={
                    "sha": setup.merge_request.diff_head_sha,
                    "merge_when_build_succeeds": True,
                    "commit_message": "Merge LANG",
                },
            )

        assert response.json() == {"status": "merge_when_build_succeeds"}
        args = service_class.call_args.args
        assert args[1].id == setup.project.id
        assert args[2].id == setup.user.id
        assert args[3] == {"should_remove_source_branch": False, "commit_message": "Merge LANG"}
        service_class.return_value.execute.assert_awaited_once()

    async def test_merge_when_build_succeeds_with_successful_pipeline_merges_now(self, client, factory, setup):
        await factory.pipeline(
            setup.project, sha=setup.merge_request.diff_head_sha, ref="fix", status=PipelineStatus.success
        )

        with patch(MERGE_WORKER) as perform_async:
            response = await client.post(
                self.url(setup),
                json={"sha": setup.merge_request.diff_head_sha, "merge_when_build_succeeds": True},
            )

        assert response.json() == {"status": "success"}
        perform_async.assert_called_once()

    async def test_merge_when_build_succeeds_without_pipeline_fails(self, client, setup):
        response = await client.post(
            self.url(setup),
            json={"sha": setup.merge_request.diff_head_sha, "merge_when_build_succeeds": True},
        )
        assert response.json() == {"status": "failed"}

    async def test_failed_build_blocks_the_merge_when_builds_must_succeed(self, client, session, factory, setup):
        setup.project.only_allow_merge_if_build_succeeds = True
        await session.commit()
        await factory.pipeline(
            setup.project, sha=setup.merge_request.diff_head_sha, ref="fix", status=PipelineStatus.failed
        )

        with patch(MERGE_WORKER) as perform_async:
            response = await client.post(self.url(setup), json={"sha": setup.merge_request.diff_head_sha})

        assert response.json() == {"status": "failed"}
        perform_async.assert_not_called()

    async def test_running_build_can_wait_when_builds_must_succeed(self, client, session, factory, setup):
        setup.project.only_allow_merge_if_build_succeeds = True
        await session.commit()
        await factory.pipeline(
            setup.project, sha=setup.merge_request.diff_head_sha, ref="fix", status=PipelineStatus.running
        )

        response = await client.post(
            self.url(setup),
            json={"sha": setup.merge_request.diff_head_sha, "merge_when_build_succeeds": True},
        )

        assert response.json() == {"status": "merge_when_build_succeeds"}


class TestCancelMergeWhenBuildSucceeds:
    async def test_cancel(self, client, session, setup):
        setup.merge_request.merge_when_build_succeeds = True
        setup.merge_request.merge_user_id = setup.user.id
        setup.merge_request.set_merge_params({"should_remove_source_branch": True, "commit_message": "Custom"})
        await session.commit()

        response = await client.post(
            merge_request_path(setup.project, setup.merge_request, "/cancel_merge_when_build_succeeds")
        )

        assert response.json() == {"status": "canceled"}
        await session.refresh(setup.merge_request)
        assert setup.merge_request.merge_when_build_succeeds is False
        assert setup.merge_request.merge_user_id is None
        assert setup.merge_request.get_merge_params() == {}

    async def test_cancel_when_not_waiting(self, client, setup):
        response = await client.post(
            merge_request_path(setup.project, setup.merge_request, "/cancel_merge_when_build_succeeds")
        )
        assert response.status_code == 422


class TestRemoveWip:
    async def test_remove_wip(self, client, session, setup):
        setup.merge_request.title = "[WIP] Set LANG for popen"
        await session.commit()

        response = await client.post(merge_request_path(setup.project, setup.merge_request, "/remove_wip"))

        assert response.status_code == 302
        await session.refresh(setup.merge_request)
        assert setup.merge_request.title == "Set LANG for popen"
        assert setup.merge_request.work_in_progress is False

        client.cookies.set("session", response.cookies["session"])
        page = await client.get(response.headers["location"])
        assert WIP_REMOVED_NOTICE in page.text


class TestCiStatus:
    def url(self, setup):
        return merge_request_path(setup.project, setup.merge_request, "/ci_status")

    async def test_without_pipeline(self, client, setup):
        response = await client.get(self.url(setup))

        assert response.status_code == 200
        assert response.json() == {
            "title": "Set LANG for popen",
            "sha": setup.merge_request.diff_head_sha,
            "status": None,
        }

    async def test_with_pipeline(self, client, factory, setup):
        pipeline = await factory.pipeline(
            setup.project, sha=setup.merge_request.diff_head_sha, ref="fix", status=PipelineStatus.success
        )

        response = await client.get(self.url(setup))

        body = response.json()
        assert body["status"] == "success"
        assert body["sha"] == pipeline.sha
        assert body["details"]["status"] == {
            "icon": "icon_status_success",
            "text": "passed",
            "label": "passed",
            "has_details": True,
            "details_path": f"/{setup.project.full_path}/pipelines/{pipeline.id}",
        }

    async def test_pipeline_of_another_sha_is_ignored(self, client, factory, setup):
        await factory.pipeline(setup.project, sha="a" * 40, ref="fix", status=PipelineStatus.success)

        response = await client.get(self.url(setup))

        assert response.json()["status"] is None
