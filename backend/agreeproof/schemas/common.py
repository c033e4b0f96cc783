"""Shared schema building blocks: camelCase models and the response envelope."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorItem(BaseModel):
    field: str | None = None
    message: str


class ApiResponse(CamelModel, Generic[DataT]):
    """Envelope wrapping every API response."""

    success: bool = True
    message: str
    data: DataT | None = None
    errors: list[ErrorItem] | None = None


def envelope(message: str, data: Any = None) -> dict[str, Any]:
    """Build a success envelope for a route handler."""
    return {"success": True, "message": message, "data": data}


__all__ = ["ApiResponse", "CamelModel", "ErrorItem", "envelope"]
