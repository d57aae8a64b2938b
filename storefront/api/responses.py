# storefront/api/responses.py
from typing import Any

from fastapi import Request

from storefront.domain.schemas import ApiResponse

_MESSAGES = {
    "POST": "Resource created successfully",
    "PUT": "Resource updated successfully",
    "PATCH": "Resource updated successfully",
    "DELETE": "Resource deleted successfully",
}


def ok(request: Request, data: Any, status_code: int = 200, message: str | None = None) -> ApiResponse:
    """Wrap a successful result in the response envelope."""
    return ApiResponse.ok(
        data,
        message=message or _MESSAGES.get(request.method, "Request completed successfully"),
        status_code=status_code,
        path=request.url.path,
    )
