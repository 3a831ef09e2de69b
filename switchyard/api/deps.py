"""
Shared helpers for the API routers.
"""

from typing import Any

from fastapi import HTTPException, Request

from switchyard.core.engine import Engine
from switchyard.lib.typed_errors import ErrorCode, OperationResult

STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.ALREADY_EXISTS: 409,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.READ_ONLY_SOURCE: 403,
    ErrorCode.MALFORMED_SOURCE: 409,
    ErrorCode.INVALID_DEFINITION: 400,
    ErrorCode.UNSUPPORTED_SOURCE: 400,
    ErrorCode.API_KEY_MISSING: 400,
    ErrorCode.FILESYSTEM_ERROR: 500,
    ErrorCode.EXTERNAL_PROCESS_FAILED: 502,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_engine(request: Request) -> Engine:
    """Get the engine from app state."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Server not ready")
    return engine


def check_result(result: Any) -> dict[str, Any]:
    """Turn an OperationResult into a response body, or raise on failure."""
    if not isinstance(result, OperationResult):
        raise HTTPException(status_code=500, detail="Unexpected operation result")
    if not result.success:
        status = STATUS_CODES.get(result.code, 500) if result.code else 500
        raise HTTPException(
            status_code=status,
            detail={"code": result.code.value if result.code else None, "message": result.detail},
        )
    return result.model_dump(mode="json", exclude_none=True)
