"""
Merge Request Endpoints.

HTML pages, JSON fragments and actions for the merge requests of a project.
All routes live under ``/{namespace_id}/{project_id}/merge_requests``; a
project or merge request the viewer may not see answers 404.

Diff and patch downloads are streamed by workhorse: the response carries an
empty body and the send-data header naming the repository and commits.
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Body, Cookie, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from githarbor.ci.status import detailed_status
from githarbor.core.database.entities import MergeRequest, Project
from githarbor.core.database.repositories import MergeRequestRepository, ProjectRepository
from githarbor.core.logging_config import get_logger
from githarbor.core.models.domain.enums import DiffViewType, MergeResult
from githarbor.git import Commit, DiffCollection, DiffRefs
from githarbor.git import workhorse
from githarbor.server.core.constant import DIFF_VIEW_COOKIE, PERMANENT_COOKIE_MAX_AGE
from githarbor.server.flash import flash, pop_flash
from githarbor.server.routing import merge_request_path, merge_requests_path, pipeline_path
from githarbor.server.schemas import (
    HtmlFragment,
    MergeParams,
    MergeRequestCreate,
    MergeRequestErrors,
    MergeRequestUpdate,
    MergeResponse,
)
from githarbor.server.serializers import MergeRequestEntity, StatusEntity
from githarbor.server.services.deps import ProjectContext, ProjectDep, not_found
from githarbor.server.services.merge_requests.base import compare_diff_refs, git_repository
from githarbor.server.services.merge_requests.build import BuildResult, BuildService
from githarbor.server.services.merge_requests.create import CreateService
from githarbor.server.services.merge_requests.merge_when_build_succeeds import MergeWhenBuildSucceedsService
from githarbor.server.services.merge_requests.mergeability import head_pipeline, mergeable
from githarbor.server.services.merge_requests.update import UpdateService
from githarbor.server.services.permissions import can_be_merged_by, load_policy
from githarbor.server.templating import render_fragment, templates
from githarbor.workers.merge_worker import MergeWorker

logger = get_logger(__name__)

router = APIRouter(prefix="/{namespace_id}/{project_id}/merge_requests", tags=["merge-requests"])

DELETED_NOTICE = "The merge request was successfully deleted."
WIP_REMOVED_NOTICE = "The merge request can now be merged."


# =====================================================================
# Helpers
# =====================================================================


def branch_params(
    source_project: Optional[str] = Query(default=None, alias="merge_request[source_project]"),
    source_branch: Optional[str] = Query(default=None, alias="merge_request[source_branch]"),
    target_project: Optional[str] = Query(default=None, alias="merge_request[target_project]"),
    target_branch: Optional[str] = Query(default=None, alias="merge_request[target_branch]"),
) -> Dict[str, Any]:
    """Read ``merge_request[...]`` query params as used by the compare form."""
    params = {
        "source_project": source_project,
        "source_branch": source_branch,
        "target_project": target_project,
        "target_branch": target_branch,
    }
    return {key: value for key, value in params.items() if value}


BranchParamsDep = Annotated[Dict[str, Any], Depends(branch_params)]


def resolve_diff_view(view: Optional[str], cookie: Optional[str]) -> str:
    for candidate in (view, cookie):
        if candidate in (DiffViewType.inline.value, DiffViewType.parallel.value):
            return candidate
    return DiffViewType.inline.value


def base_context(request: Request, ctx: ProjectContext, page: str, **extra: Any) -> Dict[str, Any]:
    context: Dict[str, Any] = {
        "page": page,
        "project": ctx.project,
        "current_user": ctx.user,
        "flash": pop_flash(request),
    }
    context.update(extra)
    return context


async def merge_request_diffs(
    project: Project, merge_request: MergeRequest, *, ignore_whitespace_change: bool = False
) -> DiffCollection:
    diff_refs = merge_request.diff_refs
    if diff_refs is None:
        return DiffCollection()
    return await compare_diff_refs(project, diff_refs, ignore_whitespace_change=ignore_whitespace_change)


async def merge_request_commits(project: Project, merge_request: MergeRequest) -> List[Commit]:
    diff_refs = merge_request.diff_refs
    if diff_refs is None:
        return []
    return await asyncio.to_thread(git_repository(project).commits_between, diff_refs.base_sha, diff_refs.head_sha)


async def source_project_of(ctx: ProjectContext, merge_request: MergeRequest) -> Optional[Project]:
    if merge_request.source_project_id is None:
        return None
    if merge_request.source_project_id == ctx.project.id:
        return ctx.project
    return await ProjectRepository(ctx.session).get_by_id(merge_request.source_project_id)


def render_diff_for_path(
    request: Request,
    diffs: DiffCollection,
    diff_refs: Optional[DiffRefs],
    project: Project,
    *,
    diff_notes_disabled: bool,
    comments_target: Optional[Dict[str, Any]] = None,
) -> HtmlFragment:
    """Render the given diffs as a ``{"html": ...}`` fragment."""
    html = render_fragment(
        "projects/diffs/_diffs.html",
        diffs=diffs,
        diff_refs=diff_refs,
        project=project,
        diff_view=resolve_diff_view(None, request.cookies.get(DIFF_VIEW_COOKIE)),
        diff_notes_disabled=diff_notes_disabled,
        comments_target=comments_target,
    )
    return HtmlFragment(html=html)


# =====================================================================
# Collection routes
# =====================================================================


@router.get(
    "",
    summary="List Merge Requests",
    description="List the merge requests targeting the project. ``opened`` includes reopened merge requests.",
    responses={200: {"description": "HTML page, or a JSON list with format=json"}},
)
async def index(
    request: Request,
    ctx: ProjectDep,
    state: str = Query(default="opened", pattern="^(opened|closed|merged|locked|all)$"),
    format: str = Query(default="html"),
):
    merge_requests = await MergeRequestRepository(ctx.session).list_for_project(ctx.project.id, state)
    if format == "json":
        return [
            MergeRequestEntity.represent((mr, merge_request_path(ctx.project, mr)), request) for mr in merge_requests
        ]
    context = base_context(
        request, ctx, "projects:merge_requests:index", merge_requests=merge_requests, state=state
    )
    return templates.TemplateResponse(request, "projects/merge_requests/index.html", context)


@router.get(
    "/new",
    response_class=HTMLResponse,
    summary="New Merge Request",
    description="Compare two branches. Without valid branches the branch selection form is shown.",
)
async def new(request: Request, ctx: ProjectDep, params: BranchParamsDep):
    ctx.authorize("create_merge_request")
    result = await BuildService(ctx.session, ctx.project, ctx.user, params).execute()

    diffs = DiffCollection()
    if result.diff_refs is not None and result.target_project is not None:
        diffs = await compare_diff_refs(result.target_project, result.diff_refs)

    source_branches: List[str] = []
    target_branches: List[str] = []
    if result.source_project is not None:
        source_branches = await asyncio.to_thread(git_repository(result.source_project).branch_names)
    if result.target_project is not None:
        target_branches = await asyncio.to_thread(git_repository(result.target_project).branch_names)

    context = base_context(
        request,
        ctx,
        "projects:merge_requests:new",
        merge_request=result.merge_request,
        source_project=result.source_project,
        target_project=result.target_project,
        errors=result.errors,
        commits=result.commits,
        diffs=diffs,
        diff_refs=result.diff_refs,
        diff_view=resolve_diff_view(None, request.cookies.get(DIFF_VIEW_COOKIE)),
        diff_notes_disabled=True,
        source_branches=source_branches,
        target_branches=target_branches,
    )
    return templates.TemplateResponse(request, "projects/merge_requests/new.html", context)


@router.post(
    "",
    status_code=status.HTTP_302_FOUND,
    summary="Create Merge Request",
    responses={
        302: {"description": "Created; redirects to the merge request"},
        422: {"model": MergeRequestErrors, "description": "Invalid branches or fields"},
    },
)
async def create(ctx: ProjectDep, body: MergeRequestCreate):
    ctx.authorize("create_merge_request")
    params = body.merge_request.model_dump(exclude_none=True)
    result = await CreateService(ctx.session, ctx.project, ctx.signed_in_user, params).execute()
    if not result.valid or result.target_project is None:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=MergeRequestErrors(errors=result.errors).model_dump(),
        )
    return RedirectResponse(
        merge_request_path(result.target_project, result.merge_request), status_code=status.HTTP_302_FOUND
    )


@router.get(
    "/diff_for_path",
    summary="Diff For Path",
    response_model=HtmlFragment,
    description=(
        "Render the diff of a single file, either of an existing merge request (``id``) "
        "or of a branch comparison (``merge_request[...]`` params)."
    ),
    responses={404: {"description": "Merge request or path not found"}},
)
async def diff_for_path(
    request: Request,
    ctx: ProjectDep,
    params: BranchParamsDep,
    old_path: str = Query(...),
    new_path: str = Query(...),
    id: Optional[int] = Query(default=None, description="iid of an existing merge request"),
):
    if id is not None:
        merge_request = await ctx.find_merge_request(id)
        diff_refs = merge_request.diff_refs
        project = ctx.project
        diff_notes_disabled = False
        comments_target: Optional[Dict[str, Any]] = {"noteable_type": "MergeRequest", "noteable_id": merge_request.id}
    else:
        ctx.authorize("create_merge_request")
        result: BuildResult = await BuildService(ctx.session, ctx.project, ctx.user, params).execute()
        if result.target_project is None:
            raise not_found()
        diff_refs = result.diff_refs
        project = result.target_project
        diff_notes_disabled = True
        comments_target = None

    if diff_refs is None:
        raise not_found("Diff not found")
    diffs = await compare_diff_refs(project, diff_refs, paths=[old_path, new_path])
    diff = diffs.find(old_path, new_path)
    if diff is None:
        raise not_found("Diff not found")

    return render_diff_for_path(
        request,
        DiffCollection([diff]),
        diff_refs,
        project,
        diff_notes_disabled=diff_notes_disabled,
        comments_target=comments_target,
    )


# =====================================================================
# Member routes
# =====================================================================


@router.get(
    "/{iid:int}.{format}",
    summary="Export Merge Request",
    description="``json`` returns the merge request; ``diff`` and ``patch`` are streamed by workhorse.",
)
async def show_as(request: Request, ctx: ProjectDep, iid: int, format: str):
    merge_request = await ctx.find_merge_request(iid)
    if format == "json":
        return MergeRequestEntity.represent((merge_request, merge_request_path(ctx.project, merge_request)), request)
    if format == "html":
        return await show(request, ctx, iid)

    diff_refs = merge_request.diff_refs
    if format not in ("diff", "patch") or diff_refs is None:
        raise not_found()
    if format == "diff":
        header, value = workhorse.send_git_diff(ctx.project.repository_path, diff_refs)
    else:
        header, value = workhorse.send_git_patch(ctx.project.repository_path, diff_refs)
    return Response(content=b"", media_type="text/plain", headers={header: value})


@router.get("/{iid:int}", response_class=HTMLResponse, summary="Show Merge Request")
async def show(request: Request, ctx: ProjectDep, iid: int):
    merge_request = await ctx.find_merge_request(iid)
    context = base_context(
        request,
        ctx,
        "projects:merge_requests:show",
        merge_request=merge_request,
        source_project=await source_project_of(ctx, merge_request),
        active_tab="notes",
    )
    return templates.TemplateResponse(request, "projects/merge_requests/show.html", context)


@router.put(
    "/{iid:int}",
    status_code=status.HTTP_302_FOUND,
    summary="Update Merge Request",
    description="Edit title, description or target branch, or close and reopen with ``state_event``.",
)
async def update(ctx: ProjectDep, iid: int, body: MergeRequestUpdate):
    merge_request = await ctx.find_merge_request(iid)
    ctx.authorize("update_merge_request", merge_request)
    params = body.merge_request.model_dump(exclude_none=True, mode="json")
    merge_request = await UpdateService(ctx.session, ctx.project, ctx.user, params).execute(merge_request)
    return RedirectResponse(merge_request_path(ctx.project, merge_request), status_code=status.HTTP_302_FOUND)


@router.delete(
    "/{iid:int}",
    status_code=status.HTTP_302_FOUND,
    summary="Delete Merge Request",
    description="Only the namespace owner and administrators may delete merge requests.",
)
async def destroy(request: Request, ctx: ProjectDep, iid: int):
    merge_request = await ctx.find_merge_request(iid)
    ctx.authorize("destroy_merge_request", merge_request)
    await MergeRequestRepository(ctx.session).delete(merge_request.id)
    logger.info(f"Deleted merge request {merge_request.to_reference()} of {ctx.project.full_path}")
    flash(request, "notice", DELETED_NOTICE)
    return RedirectResponse(merge_requests_path(ctx.project), status_code=status.HTTP_302_FOUND)


@router.post(
    "/{iid:int}/merge",
    response_model=MergeResponse,
    summary="Merge",
    description=(
        "Merge now, or once the head pipeline succeeds with ``merge_when_build_succeeds``. "
        "The reported status is one of success, failed, sha_mismatch and merge_when_build_succeeds."
    ),
    responses={404: {"description": "Merge request not found or no push access to the target project"}},
)
async def merge(ctx: ProjectDep, iid: int, body: Optional[MergeParams] = Body(default=None)) -> MergeResponse:
    """
    Resolve the merge status.

    1. Without push access to the target project the merge request is not found.
    2. A merge request that cannot be merged fails. The CI check is skipped when
       merging once the build succeeds.
    3. A ``sha`` that differs from the head sha is a mismatch.
    4. With ``merge_when_build_succeeds`` an active head pipeline defers the
       merge, a successful one merges now and anything else fails.
    5. Otherwise the merge is handed to ``MergeWorker``.
    """
    params = body or MergeParams()
    merge_request = await ctx.find_merge_request(iid)
    if not await can_be_merged_by(ctx.session, merge_request, ctx.user):
        raise not_found()
    user = ctx.signed_in_user

    if not await mergeable(ctx.session, merge_request, skip_ci_check=params.merge_when_build_succeeds):
        return MergeResponse(status=MergeResult.failed)
    if params.sha != merge_request.diff_head_sha:
        return MergeResponse(status=MergeResult.sha_mismatch)

    merge_request.merge_error = None
    merge_request = await MergeRequestRepository(ctx.session).update(merge_request)
    merge_params = params.merge_params()

    if params.merge_when_build_succeeds:
        pipeline = await head_pipeline(ctx.session, merge_request)
        if pipeline is None:
            return MergeResponse(status=MergeResult.failed)
        if pipeline.is_active:
            await MergeWhenBuildSucceedsService(ctx.session, ctx.project, user, merge_params).execute(merge_request)
            return MergeResponse(status=MergeResult.merge_when_build_succeeds)
        if pipeline.is_success:
            MergeWorker.perform_async(merge_request.id, user.id, merge_params)
            return MergeResponse(status=MergeResult.success)
        return MergeResponse(status=MergeResult.failed)

    MergeWorker.perform_async(merge_request.id, user.id, merge_params)
    return MergeResponse(status=MergeResult.success)


@router.post(
    "/{iid:int}/cancel_merge_when_build_succeeds",
    summary="Cancel Merge When Build Succeeds",
    responses={422: {"description": "The merge request is not waiting for a build"}},
)
async def cancel_merge_when_build_succeeds(ctx: ProjectDep, iid: int):
    merge_request = await ctx.find_merge_request(iid)
    ctx.authorize("update_merge_request", merge_request)
    service = MergeWhenBuildSucceedsService(ctx.session, ctx.project, ctx.user)
    if not await service.cancel(merge_request):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Merge request is not waiting for a build"
        )
    return {"status": "canceled"}


@router.post("/{iid:int}/remove_wip", status_code=status.HTTP_302_FOUND, summary="Remove WIP Prefix")
async def remove_wip(request: Request, ctx: ProjectDep, iid: int):
    merge_request = await ctx.find_merge_request(iid)
    ctx.authorize("update_merge_request", merge_request)
    params = {"title": merge_request.wipless_title}
    merge_request = await UpdateService(ctx.session, ctx.project, ctx.user, params).execute(merge_request)
    flash(request, "notice", WIP_REMOVED_NOTICE)
    return RedirectResponse(merge_request_path(ctx.project, merge_request), status_code=status.HTTP_302_FOUND)


@router.get(
    "/{iid:int}/diffs",
    summary="Merge Request Changes",
    description=(
        "The changes tab. ``format=json`` returns the rendered diffs as ``{\"html\": ...}``; "
        "``w=1`` hides whitespace changes; ``view`` stores the preferred rendering in a cookie."
    ),
)
async def diffs(
    request: Request,
    ctx: ProjectDep,
    iid: int,
    format: str = Query(default="html"),
    w: Optional[str] = Query(default=None),
    view: Optional[str] = Query(default=None),
    diff_view_cookie: Optional[str] = Cookie(default=None, alias=DIFF_VIEW_COOKIE),
):
    merge_request = await ctx.find_merge_request(iid)
    ignore_whitespace_change = w == "1"
    diff_view = resolve_diff_view(view, diff_view_cookie)
    context: Dict[str, Any] = {
        "project": ctx.project,
        "merge_request": merge_request,
        "diffs": await merge_request_diffs(ctx.project, merge_request, ignore_whitespace_change=ignore_whitespace_change),
        "diff_refs": merge_request.diff_refs,
        "diff_view": diff_view,
        "ignore_whitespace_change": ignore_whitespace_change,
        "diff_notes_disabled": False,
        "comments_target": {"noteable_type": "MergeRequest", "noteable_id": merge_request.id},
    }

    response: Response
    if format == "json":
        response = JSONResponse(
            HtmlFragment(html=render_fragment("projects/merge_requests/show/_diffs.html", **context)).model_dump()
        )
    else:
        context.update(
            base_context(
                request,
                ctx,
                "projects:merge_requests:diffs",
                source_project=await source_project_of(ctx, merge_request),
                active_tab="diffs",
            )
        )
        response = templates.TemplateResponse(request, "projects/merge_requests/diffs.html", context)

    if view in (DiffViewType.inline.value, DiffViewType.parallel.value):
        response.set_cookie(DIFF_VIEW_COOKIE, view, max_age=PERMANENT_COOKIE_MAX_AGE)
    return response


@router.get(
    "/{iid:int}/commits",
    summary="Merge Request Commits",
    description="The commits tab. ``format=json`` returns the rendered commit list as ``{\"html\": ...}``.",
)
async def commits(request: Request, ctx: ProjectDep, iid: int, format: str = Query(default="html")):
    merge_request = await ctx.find_merge_request(iid)
    commit_list = await merge_request_commits(ctx.project, merge_request)
    if format == "json":
        html = render_fragment("projects/merge_requests/show/_commits.html", commits=commit_list)
        return JSONResponse(HtmlFragment(html=html).model_dump())
    context = base_context(
        request,
        ctx,
        "projects:merge_requests:show",
        merge_request=merge_request,
        source_project=await source_project_of(ctx, merge_request),
        commits=commit_list,
        active_tab="commits",
    )
    return templates.TemplateResponse(request, "projects/merge_requests/show.html", context)


@router.get(
    "/{iid:int}/ci_status",
    summary="Merge Request CI Status",
    description="Status of the head pipeline, with the status badge rendered by ``StatusEntity``.",
)
async def ci_status(request: Request, ctx: ProjectDep, iid: int):
    merge_request = await ctx.find_merge_request(iid)
    pipeline = await head_pipeline(ctx.session, merge_request)
    response: Dict[str, Any] = {
        "title": merge_request.title,
        "sha": merge_request.diff_head_sha,
        "status": None,
    }
    if pipeline is None:
        return response

    pipeline_project = await ProjectRepository(ctx.session).get_by_id(pipeline.project_id)
    if pipeline_project is None:
        return response
    policy = await load_policy(ctx.session, pipeline_project, ctx.user)
    status_details = detailed_status(
        pipeline,
        ctx.user,
        can_read=policy.can("read_pipeline"),
        path=pipeline_path(pipeline_project, pipeline),
    )
    response.update(
        {
            "sha": pipeline.sha,
            "status": pipeline.status,
            "details": {"status": StatusEntity.represent(status_details, request)},
        }
    )
    return response
