# agentrun/tests/schemas/test_tool_result.py
"""
Unit tests for the ToolResult tagged union and its payload form.
"""
import pytest
from pydantic import ValidationError

from agentrun.schemas.tool_result import (
    Artifact,
    ErrorCode,
    ToolFailure,
    ToolSuccess,
    err_result,
    ok_result,
    tool_result_adapter,
    with_duration,
)


def test_success_payload_uses_camel_case_artifacts():
    artifact = Artifact(type="file", name="out.txt", mime_type="text/plain", size=3, file_id="f1")
    result = ok_result("wrote it", artifacts=[artifact])
    payload = result.to_payload()
    assert payload == {
        "success": True,
        "output": "wrote it",
        "error": None,
        "artifacts": [
            {"type": "file", "name": "out.txt", "mimeType": "text/plain", "size": 3, "fileId": "f1"}
        ],
    }


def test_failure_never_carries_artifacts():
    failure = err_result(ErrorCode.INVALID_PARAMS, "bad", issues=["path: required field is missing"])
    assert failure.success is False
    assert failure.artifacts == []
    assert failure.error == "INVALID_PARAMS: bad"
    payload = failure.to_payload()
    assert payload["artifacts"] == []
    assert payload["errorCode"] == "INVALID_PARAMS"
    assert payload["issues"] == ["path: required field is missing"]

    # the failure variant has no artifacts field to smuggle them through
    parsed = tool_result_adapter.validate_python(
        {"kind": "failure", "error_code": "TIMEOUT", "message": "x", "artifacts": [{"name": "a"}]}
    )
    assert parsed.artifacts == []


def test_failure_requires_a_known_error_code():
    with pytest.raises(ValidationError):
        ToolFailure(error_code="OOPS", message="x")


def test_adapter_discriminates_on_kind():
    parsed = tool_result_adapter.validate_python({"kind": "success", "output": "hi"})
    assert isinstance(parsed, ToolSuccess)
    parsed = tool_result_adapter.validate_python(
        {"kind": "failure", "error_code": "TIMEOUT", "message": "too slow"}
    )
    assert isinstance(parsed, ToolFailure)
    assert parsed.error_code is ErrorCode.TIMEOUT


def test_with_duration_copies():
    original = ok_result("x")
    stamped = with_duration(original, 42)
    assert stamped.duration_ms == 42
    assert original.duration_ms == 0
    assert with_duration(original, -5).duration_ms == 0
