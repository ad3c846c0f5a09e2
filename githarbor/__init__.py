"""GitHarbor.

This package contains a small Git hosting service centred on merge requests.
Projects point at bare repositories on local disk; the web server renders merge
request pages, diffs and commits, resolves merge attempts and hands the actual
merge to background workers.

Core subpackages
----------------

- ``githarbor.core``:

  - Logging configuration and domain errors.
  - SQLModel entities and async repositories for users, projects, merge
    requests and pipelines.

- ``githarbor.git``:

  - A subprocess based git runner, repository operations (compare, commits,
    merge), the unified diff parser and workhorse send-data helpers.

- ``githarbor.ci``:

  - Detailed pipeline status objects used by the CI widgets.

- ``githarbor.server``:

  - The FastAPI application, routes, templates, permission checks and the
    merge request services.

- ``githarbor.workers``:

  - Background jobs (merge, pipeline success) scheduled on the server loop.

Typical workflow
----------------

1. A developer opens ``/<namespace>/<project>/merge_requests/new`` and picks a
   source and target branch.
2. The merge request is created with a snapshot of its diff refs.
3. Reviewers browse the diffs and commits tabs.
4. A merge is requested with the head sha the user saw. The server either
   schedules ``MergeWorker`` immediately or, when the pipeline is still
   running, arms merge-when-build-succeeds.
"""
