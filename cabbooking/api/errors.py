"""Maps lifecycle ``ErrorKind`` values onto HTTP responses."""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from cabbooking.domain.errors import ErrorKind, LifecycleError

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    # Data was saved, but the caller must still see a failure
    ErrorKind.PARTIAL_SUCCESS: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.UPSTREAM: status.HTTP_502_BAD_GATEWAY,
}


async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content={"detail": exc.message, "kind": exc.kind.value},
    )
