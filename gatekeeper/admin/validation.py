"""
Gatekeeper Admin - Input Cleaning and Identifiers
=================================================
"""

from __future__ import annotations

import uuid
from typing import Any, Optional, Protocol

from gatekeeper.admin.exceptions import AdminValidationError


class IdProvider(Protocol):
    def new_id(self) -> str:
        ...


class UuidIdProvider:
    def new_id(self) -> str:
        return str(uuid.uuid4())


def clean_string(value: Any, *, field_name: str) -> str:
    if not isinstance(value, str):
        raise AdminValidationError(field_name, f"{field_name} must be a non-empty string.")
    cleaned = value.strip()
    if not cleaned:
        raise AdminValidationError(field_name, f"{field_name} must be a non-empty string.")
    return cleaned


def clean_optional_string(value: Any, *, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise AdminValidationError(field_name, f"{field_name} must be a string.")
    return value.strip() or None


def clean_bool(value: Any, *, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise AdminValidationError(field_name, f"{field_name} must be a boolean.")
    return value


def clean_int(value: Any, *, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise AdminValidationError(field_name, f"{field_name} must be an integer.")
    return value


def reject_unknown_fields(changes: dict, allowed: frozenset[str]) -> None:
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise AdminValidationError(
            unknown[0], f"Unknown field(s): {', '.join(unknown)}."
        )
