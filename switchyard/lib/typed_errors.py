"""
Typed operation results.

Mutating operations (add/remove/toggle a server, sync or install a skill,
switch model) report failures as data rather than raising: most of them are
routine and user-facing ("name already in use"). An OperationResult carries
the outcome, a human-readable detail and an error code for programmatic
handling.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Error codes for programmatic handling."""

    # Write conflicts
    ALREADY_EXISTS = "already_exists"

    # Missing resources
    NOT_FOUND = "not_found"

    # Definition lives in a source we never write to
    READ_ONLY_SOURCE = "read_only_source"

    # Malformed input
    MALFORMED_SOURCE = "malformed_source"
    INVALID_DEFINITION = "invalid_definition"
    UNSUPPORTED_SOURCE = "unsupported_source"

    # Filesystem and external process failures
    FILESYSTEM_ERROR = "filesystem_error"
    EXTERNAL_PROCESS_FAILED = "external_process_failed"

    # Model switching
    API_KEY_MISSING = "api_key_missing"

    # Generic
    INTERNAL_ERROR = "internal_error"


ERROR_TITLES: dict[ErrorCode, str] = {
    ErrorCode.ALREADY_EXISTS: "Already Exists",
    ErrorCode.NOT_FOUND: "Not Found",
    ErrorCode.READ_ONLY_SOURCE: "Read-only Source",
    ErrorCode.MALFORMED_SOURCE: "Malformed Configuration",
    ErrorCode.INVALID_DEFINITION: "Invalid Definition",
    ErrorCode.UNSUPPORTED_SOURCE: "Unsupported Source",
    ErrorCode.FILESYSTEM_ERROR: "Filesystem Error",
    ErrorCode.EXTERNAL_PROCESS_FAILED: "Command Failed",
    ErrorCode.API_KEY_MISSING: "API Key Missing",
    ErrorCode.INTERNAL_ERROR: "Internal Error",
}


class OperationResult(BaseModel):
    """Outcome of a single mutating operation."""

    success: bool = Field(description="Whether the operation took effect")
    detail: str = Field(default="", description="Human-readable outcome")
    code: Optional[ErrorCode] = Field(default=None, description="Set on failure")
    subject: Optional[str] = Field(
        default=None, description="Id of the server/skill/model the operation concerned"
    )
    data: Optional[dict[str, Any]] = Field(default=None, description="Extra payload")

    @classmethod
    def ok(cls, detail: str = "", subject: Optional[str] = None, **data: Any) -> "OperationResult":
        return cls(success=True, detail=detail, subject=subject, data=data or None)

    @classmethod
    def fail(
        cls, code: ErrorCode, detail: str, subject: Optional[str] = None
    ) -> "OperationResult":
        return cls(success=False, detail=detail, code=code, subject=subject)

    @property
    def title(self) -> str:
        if self.success or self.code is None:
            return "OK"
        return ERROR_TITLES.get(self.code, "Error")

    def __bool__(self) -> bool:
        return self.success
