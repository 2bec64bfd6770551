# agentrun/utils/redact.py
"""
Log redaction for tool parameters and results.

Tool calls arrive from the model verbatim, so a shell command or a file body
can carry credentials. Everything that is logged about a tool call goes
through `redact_for_log` first.

Notes:
- This is **for logs only**. The executor and the policy engine always see
  the original parameters.
- Redaction is best-effort; extend the pattern lists as new leaks show up.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping

# Case-insensitive key substrings that imply sensitive values
KEY_PATTERNS = [
    "password",
    "passwd",
    "secret",
    "token",
    "apikey",
    "api_key",
    "authorization",
    "cookie",
    "private_key",
    "credential",
    "access_key",
]

# Values that look like credentials on their own
VALUE_PATTERNS = [
    re.compile(r"^Bearer\s+[A-Za-z0-9\-\._~\+\/]+=*$", re.IGNORECASE),
    re.compile(r"^eyJ[a-zA-Z0-9_\-]+?\.[a-zA-Z0-9_\-]+?\.[a-zA-Z0-9_\-]+$"),
    re.compile(r"^(sk|pk|ghp|xox[abp])[-_][A-Za-z0-9\-_]{16,}$"),
]

# NAME=value assignments embedded in shell commands (export API_TOKEN=abc ...)
INLINE_ASSIGNMENT = re.compile(
    r"\b([A-Z0-9_]*(?:TOKEN|SECRET|PASSWORD|PASSWD|API_KEY|APIKEY)[A-Z0-9_]*)=(\"[^\"]*\"|'[^']*'|\S+)",
    re.IGNORECASE,
)

REDACTED = "********"


def _looks_sensitive_key(key: str) -> bool:
    k = key.lower()
    return any(p in k for p in KEY_PATTERNS)


def _looks_sensitive_value(val: Any) -> bool:
    if not isinstance(val, str):
        return False
    s = val.strip()
    if not s:
        return False
    return any(rx.search(s) for rx in VALUE_PATTERNS)


def _redact_primitive(val: Any) -> Any:
    if isinstance(val, str):
        if len(val) <= 8:
            return REDACTED
        return f"{REDACTED}({len(val)})"
    return REDACTED


def redact_inline(text: str) -> str:
    """Mask NAME=value secrets inside free text such as shell commands."""
    return INLINE_ASSIGNMENT.sub(lambda m: f"{m.group(1)}={REDACTED}", text)


def redact_for_log(obj: Any) -> Any:
    """
    Return a structurally similar object with sensitive material masked.

    - Mapping: redact by key heuristics; recurse values.
    - list/tuple: recurse each element.
    - String: mask whole-value credentials, then inline assignments.
    - Everything else: pass through.
    """
    try:
        if isinstance(obj, Mapping):
            out: Dict[str, Any] = {}
            for k, v in obj.items():
                if _looks_sensitive_key(str(k)) or _looks_sensitive_value(v):
                    out[k] = _redact_primitive(v)
                else:
                    out[k] = redact_for_log(v)
            return out
        elif isinstance(obj, (list, tuple)):
            t = type(obj)
            return t(redact_for_log(x) for x in obj)
        elif isinstance(obj, str):
            if _looks_sensitive_value(obj):
                return _redact_primitive(obj)
            return redact_inline(obj)
        else:
            return obj
    except Exception:
        return REDACTED
