"""Helpers for fields that hold either a bare reference or a populated document.

MongoDB documents come back with foreign keys as ``ObjectId`` values unless
the repository expanded them. When the repository tries to expand a
reference and the target is gone, it leaves a ``Reference`` in its place so
consumers never have to guess whether a value is an id or a document.
"""

from collections.abc import Mapping
from typing import Any, Optional
from pydantic import BaseModel


class Reference(BaseModel):
    """A foreign key that was not expanded into its document."""
    id: str
    collection: Optional[str] = None

    def __str__(self) -> str:
        return self.id


def _has_fields(value: Any, *fields: str) -> bool:
    return isinstance(value, Mapping) and all(field in value for field in fields)


def is_populated_store(value: Any) -> bool:
    return _has_fields(value, "name", "storeEmail")


def is_populated_product(value: Any) -> bool:
    return _has_fields(value, "name", "price")


def is_populated_user(value: Any) -> bool:
    return _has_fields(value, "firstName", "lastName", "email")


def reference_id(value: Any) -> Optional[str]:
    """Canonical string id of a reference, whatever shape it is in."""
    if value is None:
        return None
    if isinstance(value, Reference):
        return value.id
    if isinstance(value, Mapping):
        return reference_id(value.get("_id"))
    return str(value)
