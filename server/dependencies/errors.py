from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.exceptions.ServiceErrors import (
    InputValidationError,
    RecordNotFoundError,
    ServiceError,
    UnsupportedFileTypeError,
    UpstreamServiceError,
)

# most specific first; subclasses of InputValidationError share its status
STATUS_BY_ERROR: list[tuple[type[ServiceError], int]] = [
    (RecordNotFoundError, 404),
    (InputValidationError, 400),
    (UnsupportedFileTypeError, 400),
    (UpstreamServiceError, 502),
]


def status_for(exc: ServiceError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def register_exception_handlers(app: FastAPI) -> None:
    """Map service-level failures onto HTTP status codes with a ``{"detail": ...}`` body."""

    @app.exception_handler(ServiceError)
    async def _service_error(request: Request, exc: ServiceError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            request.app.state.helper_config.get_logger().error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"detail": str(exc)})
