"""Type definitions for database operations."""

from typing import Any

type SQLParams = tuple[Any, ...] | dict[str, Any]
"""SQL parameter types: positional tuple or named dict for query binding."""
