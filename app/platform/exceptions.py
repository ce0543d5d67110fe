import logging
from typing import Iterable, List, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.response import api_response


class ScanError(Exception):
    """Base class for every error raised by the scan scheduler."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnknownOperationError(ScanError):
    """An operation id has no classification or no registered capability."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, operation_ids: Iterable[str]):
        self.operation_ids: List[str] = list(operation_ids)
        super().__init__(f"Unknown operation(s): {', '.join(self.operation_ids)}")


class UnknownPlaylistError(ScanError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, playlist_id: str):
        self.playlist_id = playlist_id
        super().__init__(f"Playlist with ID '{playlist_id}' not found")


class DependencyValidationError(ScanError):
    """Selected operations are missing prerequisite operations.

    Raised before any phase runs; fatal to plan construction.
    """

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, missing_dependencies: Iterable[str]):
        self.missing_dependencies: List[str] = list(missing_dependencies)
        super().__init__(
            f"Missing required operation(s): {', '.join(self.missing_dependencies)}"
        )


class ResourceAcquisitionError(ScanError):
    """The browser engine could not open or navigate to a page."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Resource acquisition failed: {reason}")


class OperationError(ScanError):
    """A single operation failed after its page was acquired."""

    def __init__(self, operation_id: str, reason: str, url: Optional[str] = None):
        self.operation_id = operation_id
        self.url = url
        super().__init__(f"{operation_id} failed: {reason}")


def add_exception_handlers(app):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(message=str(exc.detail) or "Error", status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            data={"errors": exc.errors()},
        )

    @app.exception_handler(DependencyValidationError)
    async def dependency_exception_handler(request: Request, exc: DependencyValidationError):
        return api_response(
            message=exc.message,
            status_code=exc.status_code,
            data={"missing_dependencies": exc.missing_dependencies},
        )

    @app.exception_handler(ScanError)
    async def scan_exception_handler(request: Request, exc: ScanError):
        return api_response(message=exc.message, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logging.exception(f"Unhandled exception: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
