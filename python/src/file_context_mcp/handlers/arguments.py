"""
Argument validation shared by the tool handlers.

MCP arguments arrive as an untyped dict. These helpers pull typed values out
of it and raise InvalidArguments for anything malformed.
"""

import logging
from typing import Any

from ..errors import InvalidArguments
from ..sandbox import MAX_PATH_LENGTH

logger = logging.getLogger(__name__)


# Input validation constants
MAX_QUERY_LENGTH = 50_000


def require_string(arguments: dict[str, Any], key: str, max_length: int | None = None) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidArguments(f"'{key}' is required and must be a non-empty string")
    if max_length is not None and len(value) > max_length:
        raise InvalidArguments(f"'{key}' too long ({len(value)} > {max_length} characters)")
    return value


def optional_string(arguments: dict[str, Any], key: str) -> str | None:
    value = arguments.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidArguments(f"'{key}' must be a string")
    return value


def validate_query(arguments: dict[str, Any]) -> str:
    return require_string(arguments, "query", max_length=MAX_QUERY_LENGTH)


def check_path(path: str, key: str) -> str:
    if len(path) > MAX_PATH_LENGTH:
        raise InvalidArguments(f"'{key}' too long ({len(path)} > {MAX_PATH_LENGTH})")
    if "\x00" in path:
        raise InvalidArguments(f"'{key}' contains null bytes")
    return path


def required_path(arguments: dict[str, Any], key: str) -> str:
    return check_path(require_string(arguments, key), key)


def optional_path(arguments: dict[str, Any], key: str = "path") -> str | None:
    path = optional_string(arguments, key)
    if path is None:
        return None
    return check_path(path, key)


def optional_int(arguments: dict[str, Any], key: str, default: int) -> int:
    """
    Read an integer argument.

    Only real integers count: booleans, floats and strings fall back to
    ``default``.
    """
    value = arguments.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        logger.warning(f"Ignoring non-integer '{key}' argument: {value!r}")
        return default
    return value


def optional_bool(arguments: dict[str, Any], key: str, default: bool = False) -> bool:
    value = arguments.get(key)
    if isinstance(value, bool):
        return value
    return default
