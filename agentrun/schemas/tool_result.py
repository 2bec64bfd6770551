# agentrun/schemas/tool_result.py
"""
Outcome of one tool invocation.

`ToolResult` is a tagged union of `ToolSuccess` and `ToolFailure`, discriminated
on `kind`. Only the success variant carries artifacts, so a failed call can
never report a file it produced. Both variants expose the same read surface
(`success`, `output`, `error`, `duration_ms`, `artifacts`) for code that just
wants to render a result.

`to_payload()` is the JSON object appended to the conversation as the tool
message content and broadcast in `tool.complete`.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class ErrorCode(str, Enum):
    """Tag attached to every failed tool result."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_PARAMS = "INVALID_PARAMS"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    TIMEOUT = "TIMEOUT"
    SANDBOX_UNAVAILABLE = "SANDBOX_UNAVAILABLE"
    NOT_RUNNING = "NOT_RUNNING"
    REJECTED = "REJECTED"
    APPROVAL_DENIED = "APPROVAL_DENIED"
    CANCELLED = "CANCELLED"


class Artifact(BaseModel):
    """A durable output of a tool, referenced by a stable file id."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    type: Literal["file", "image", "code", "data"] = "file"
    name: str
    mime_type: str = "application/octet-stream"
    size: int = Field(0, ge=0)
    file_id: Optional[str] = Field(
        None, description="Stable id; file.created is only emitted when set"
    )


class _ResultBase(BaseModel):
    output: str = ""
    duration_ms: int = Field(0, ge=0)
    meta: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "artifacts": [a.model_dump(by_alias=True) for a in self.artifacts],
        }


class ToolSuccess(_ResultBase):
    kind: Literal["success"] = "success"
    artifacts: List[Artifact] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return True

    @property
    def error(self) -> None:
        return None

    @property
    def error_code(self) -> None:
        return None


class ToolFailure(_ResultBase):
    kind: Literal["failure"] = "failure"
    error_code: ErrorCode
    message: str = Field(..., description="Human-readable error text")
    issues: List[str] = Field(
        default_factory=list, description="Per-field problems for INVALID_PARAMS"
    )

    @property
    def success(self) -> bool:
        return False

    @property
    def error(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    @property
    def artifacts(self) -> List[Artifact]:
        return []

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["errorCode"] = self.error_code.value
        if self.issues:
            payload["issues"] = list(self.issues)
        return payload


ToolResult = Annotated[Union[ToolSuccess, ToolFailure], Field(discriminator="kind")]

tool_result_adapter: TypeAdapter = TypeAdapter(ToolResult)


def ok_result(
    output: str = "",
    *,
    artifacts: Optional[List[Artifact]] = None,
    duration_ms: int = 0,
    meta: Optional[Dict[str, Any]] = None,
) -> ToolSuccess:
    return ToolSuccess(
        output=output,
        artifacts=list(artifacts or []),
        duration_ms=duration_ms,
        meta=meta or {},
    )


def err_result(
    code: ErrorCode,
    message: str,
    *,
    output: str = "",
    issues: Optional[List[str]] = None,
    duration_ms: int = 0,
    meta: Optional[Dict[str, Any]] = None,
) -> ToolFailure:
    return ToolFailure(
        error_code=code,
        message=message,
        output=output,
        issues=list(issues or []),
        duration_ms=duration_ms,
        meta=meta or {},
    )


def with_duration(result: Union[ToolSuccess, ToolFailure], duration_ms: int):
    """Return a copy of `result` stamped with the measured duration."""
    return result.model_copy(update={"duration_ms": max(0, int(duration_ms))})
