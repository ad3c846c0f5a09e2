"""
Background workers.

Workers run on the server's event loop as tracked asyncio tasks, each with
its own database session:

- ``merge_worker.MergeWorker``: run ``MergeService`` for a merge request
- ``pipeline_success_worker.PipelineSuccessWorker``: merge requests waiting
  for a build after their pipeline succeeds
"""
