# agentrun/utils/resources.py
"""
Parsers for the human-written resource limits in the sandbox config.

Every parser falls back to a safe default instead of raising: a typo in
`memory: 512MBB` must not make sandbox provisioning fail.
"""

from __future__ import annotations

import re

from agentrun.utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_MEMORY_BYTES = 512 * 1024 * 1024
DEFAULT_NANO_CPUS = 1_000_000_000
DEFAULT_TMPFS_SIZE = "1g"

_MULTIPLIERS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([KMGT]?B?)?$", re.IGNORECASE)


def _normalize_unit(unit: str | None, default: str) -> str:
    u = (unit or "").upper()
    if not u:
        return default
    if u == "B":
        return "B"
    if not u.endswith("B"):
        u += "B"
    return u


def parse_memory(value: object, default: int = DEFAULT_MEMORY_BYTES) -> int:
    """Parse "512MB", "1.5g", "2048" (MB) into bytes.

    :param value: Limit string from config. Bare numbers are megabytes.
    :param default: Returned when the string cannot be parsed.
    :return: Number of bytes.
    :rtype: int
    """
    match = _SIZE_RE.match(str(value or "").strip())
    if not match:
        logger.warning("Unparseable memory limit %r; using default", value)
        return default
    amount = float(match.group(1))
    unit = _normalize_unit(match.group(2), "MB")
    bytes_ = int(amount * _MULTIPLIERS.get(unit, _MULTIPLIERS["MB"]))
    if bytes_ <= 0:
        logger.warning("Non-positive memory limit %r; using default", value)
        return default
    return bytes_


def parse_cpu(value: object, default: int = DEFAULT_NANO_CPUS) -> int:
    """Parse a CPU count ("1", "0.5") into Docker nano-CPUs."""
    try:
        cpus = float(str(value).strip())
    except (TypeError, ValueError):
        logger.warning("Unparseable cpu limit %r; using default", value)
        return default
    if cpus <= 0:
        logger.warning("Non-positive cpu limit %r; using default", value)
        return default
    return int(cpus * 1_000_000_000)


def parse_size(value: object, default: str = DEFAULT_TMPFS_SIZE) -> str:
    """Normalize a disk quota ("1GB", "256m") into a tmpfs `size=` value."""
    match = _SIZE_RE.match(str(value or "").strip())
    if not match:
        logger.warning("Unparseable disk quota %r; using default", value)
        return default
    amount = float(match.group(1))
    unit = _normalize_unit(match.group(2), "B")
    bytes_ = int(amount * _MULTIPLIERS[unit])
    if bytes_ <= 0:
        return default
    if bytes_ % _MULTIPLIERS["GB"] == 0:
        return f"{bytes_ // _MULTIPLIERS['GB']}g"
    if bytes_ % _MULTIPLIERS["MB"] == 0:
        return f"{bytes_ // _MULTIPLIERS['MB']}m"
    if bytes_ % _MULTIPLIERS["KB"] == 0:
        return f"{bytes_ // _MULTIPLIERS['KB']}k"
    return str(bytes_)
