"""
Merge request services.

Each service is built with ``(session, project, current_user, params)`` and
exposes an ``execute`` coroutine:

- ``build.BuildService``: compare two branches into an unsaved merge request
- ``create.CreateService``: persist a built merge request
- ``update.UpdateService``: edit fields and apply state events
- ``merge.MergeService``: merge into the target branch
- ``merge_when_build_succeeds.MergeWhenBuildSucceedsService``: defer a merge
  until the head pipeline succeeds

``mergeability`` holds the checks shared by the merge endpoint and services.
"""
