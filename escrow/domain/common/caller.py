"""Verified identity of whoever invoked an operation."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Caller:
    user_id: str
    is_admin: bool = False
