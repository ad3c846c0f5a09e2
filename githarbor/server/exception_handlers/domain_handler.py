"""
Domain Exception Handlers.

Maps errors raised by merge request state changes and the git layer to HTTP
responses.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from githarbor.core.errors import InvalidStateTransitionError
from githarbor.core.logging_config import get_logger
from githarbor.git.errors import GitError, NotARepositoryError

logger = get_logger(__name__)


async def invalid_state_transition_handler(request: Request, exc: InvalidStateTransitionError) -> JSONResponse:
    """A state event that is not allowed from the current state is a client error."""
    logger.info(f"Rejected state event in {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "event": exc.event, "state": exc.state},
    )


async def git_error_handler(request: Request, exc: GitError) -> JSONResponse:
    """
    Log a failed git command and answer 500.

    A project whose repository is missing on disk answers 404 instead.
    """
    if isinstance(exc, NotARepositoryError):
        logger.warning(f"Repository missing for {request.url.path}: {exc.path}")
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Repository not found"})

    logger.error(
        f"Git command failed in {request.method} {request.url.path}: {exc.message}",
        exc_info=True,
        extra={"command": exc.command, "exit_code": exc.exit_code},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Git command failed", "error_type": type(exc).__name__},
    )
