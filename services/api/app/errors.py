from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from packages.shared.schemas.payment_v1 import ErrorResponseV1


class ApiError(Exception):
    """Raised by routers for a non-2xx JSON response shaped like ErrorResponseV1."""

    def __init__(self, status_code: int, error: str, details: str | None = None) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details


async def api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    body = ErrorResponseV1(error=exc.error, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))
