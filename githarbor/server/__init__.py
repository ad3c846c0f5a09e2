"""
GitHarbor Server Package.

This package contains the web server of GitHarbor: merge request pages,
JSON fragments and the CI pipeline endpoints used by build runners.

Subpackages:
    api: FastAPI route definitions and endpoint logic.
    core: Configuration and constants.
    exception_handlers: Error-to-response mapping.
    serializers: Request-aware JSON entities.
    services: Permissions and merge request business logic.
    templates: Jinja2 templates for the HTML pages and fragments.
"""
