# agentrun/tools/schema_validation.py
"""
Generic parameter validation against a tool's JSON schema.

Schemas stay data: the catalog is built at runtime and handed to the model
as-is, so validation goes through `jsonschema` rather than compiled models.
"""

from __future__ import annotations

from typing import Any, Dict, List

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from agentrun.exceptions import ToolRegistrationError


def check_schema(schema: Dict[str, Any]) -> None:
    """Reject a malformed input schema at registration time."""
    try:
        Draft202012Validator.check_schema(schema)
    except SchemaError as e:
        raise ToolRegistrationError(f"Invalid input schema: {e.message}") from e


def _field_path(error) -> str:
    parts = [str(p) for p in error.absolute_path]
    return ".".join(parts) if parts else "<root>"


def validate_params(schema: Dict[str, Any], params: Dict[str, Any]) -> List[str]:
    """Return one entry per violated field; an empty list means valid.

    Missing `required` properties are reported one per name so the caller can
    see every absent field, not just the first.
    """
    validator = Draft202012Validator(schema)
    issues: List[str] = []
    for error in sorted(validator.iter_errors(params), key=lambda e: [str(p) for p in e.path]):
        if error.validator == "required":
            present = error.instance if isinstance(error.instance, dict) else {}
            prefix = _field_path(error)
            for name in error.validator_value:
                if name not in present:
                    field = name if prefix == "<root>" else f"{prefix}.{name}"
                    issues.append(f"{field}: required field is missing")
            continue
        issues.append(f"{_field_path(error)}: {error.message}")
    return issues
