"""Helpers for binding domain values to SQL parameters."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


def plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def plain_values(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: plain(value) for key, value in values.items()}
