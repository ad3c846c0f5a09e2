"""
Pipeline Endpoints.

CI runners report pipelines for a (ref, sha) pair of a project and update
their status. A pipeline turning successful continues the merges that were
waiting for it.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status

from githarbor.ci.status import detailed_status
from githarbor.core.database.base import utc_now
from githarbor.core.database.entities import Pipeline
from githarbor.core.database.repositories import PipelineRepository
from githarbor.core.logging_config import get_logger
from githarbor.core.models.domain.enums import PipelineStatus
from githarbor.server.routing import pipeline_path
from githarbor.server.schemas import PipelineCreate, PipelineRead, PipelineUpdate
from githarbor.server.serializers import PipelineEntity
from githarbor.server.services.deps import ProjectContext, ProjectDep, not_found
from githarbor.workers.pipeline_success_worker import PipelineSuccessWorker

logger = get_logger(__name__)

router = APIRouter(prefix="/{namespace_id}/{project_id}/pipelines", tags=["pipelines"])


def represent(request: Request, ctx: ProjectContext, pipeline: Pipeline) -> dict:
    status_details = detailed_status(
        pipeline,
        ctx.user,
        can_read=ctx.policy.can("read_pipeline"),
        path=pipeline_path(ctx.project, pipeline),
    )
    return PipelineEntity.represent((pipeline, status_details), request)


@router.post(
    "",
    response_model=PipelineRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Pipeline",
    description="Report a new pipeline for a ref and commit of the project.",
)
async def create_pipeline(request: Request, ctx: ProjectDep, body: PipelineCreate):
    ctx.authorize("create_pipeline")
    pipeline = Pipeline(project_id=ctx.project.id, sha=body.sha, ref=body.ref, status=body.status.value)
    pipeline = await PipelineRepository(ctx.session).create(pipeline)
    logger.info(f"Created pipeline {pipeline.id} for {ctx.project.full_path}@{pipeline.ref}")
    return represent(request, ctx, pipeline)


@router.get(
    "/{pipeline_id:int}",
    response_model=PipelineRead,
    summary="Get Pipeline",
    responses={404: {"description": "Pipeline not found"}},
)
async def get_pipeline(request: Request, ctx: ProjectDep, pipeline_id: int):
    ctx.authorize("read_pipeline")
    pipeline = await PipelineRepository(ctx.session).find_for_project(ctx.project.id, pipeline_id)
    if pipeline is None:
        raise not_found("Pipeline not found")
    return represent(request, ctx, pipeline)


@router.put(
    "/{pipeline_id:int}",
    response_model=PipelineRead,
    summary="Update Pipeline Status",
    description="Change the pipeline status. Turning successful triggers the merges waiting for the build.",
    responses={404: {"description": "Pipeline not found"}},
)
async def update_pipeline(request: Request, ctx: ProjectDep, pipeline_id: int, body: PipelineUpdate):
    ctx.authorize("update_pipeline")
    pipelines = PipelineRepository(ctx.session)
    pipeline = await pipelines.find_for_project(ctx.project.id, pipeline_id)
    if pipeline is None:
        raise not_found("Pipeline not found")

    became_successful = body.status == PipelineStatus.success and not pipeline.is_success
    pipeline.status = body.status.value
    pipeline.updated_at = utc_now()
    pipeline = await pipelines.update(pipeline)
    logger.info(f"Pipeline {pipeline.id} of {ctx.project.full_path} is now {pipeline.status}")

    if became_successful:
        PipelineSuccessWorker.perform_async(pipeline.id)
    return represent(request, ctx, pipeline)
