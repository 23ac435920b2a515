# utils/result.py
"""Typed outcomes for domain checks and request handlers.

Domain rules never raise for expected failures; they return a ``Result``
carrying either a value or an ``Error``. Routes translate failures into HTTP
responses with ``raise_for_failure``.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Optional, TypeVar

from fastapi import HTTPException, status

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    INSUFFICIENT_STOCK = "insufficient_stock"
    CONFLICT = "conflict"
    PERSISTENCE = "persistence"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Error:
    code: str
    message: str
    kind: ErrorKind
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Error) -> "Result[T]":
        return cls(error=error)


# Shared errors
FORBIDDEN = Error("Error.Forbidden", "You do not have permission to access this resource.", ErrorKind.FORBIDDEN)
NOT_FOUND = Error("Error.NotFound", "The requested resource was not found.", ErrorKind.NOT_FOUND)
NO_CHANGES = Error("Error.Conflict", "The request did not change anything.", ErrorKind.CONFLICT)
CANCELLED = Error("Error.Cancelled", "The operation was cancelled before it completed.", ErrorKind.CANCELLED)


def not_found(code: str, message: str) -> Error:
    return Error(code, message, ErrorKind.NOT_FOUND)


def validation_failed(code: str, message: str) -> Error:
    return Error(code, message, ErrorKind.VALIDATION)


def insufficient_stock(product_name: str, available: int, requested: int) -> Error:
    return Error(
        "Product.InsufficientStock",
        f"Insufficient stock for {product_name} (requested {requested}, available {available})",
        ErrorKind.INSUFFICIENT_STOCK,
        {"product_name": product_name, "available": available, "requested": requested},
    )


def persistence_failure(code: str) -> Error:
    return Error(code, "The changes could not be saved.", ErrorKind.PERSISTENCE)


# API boundary mapping
STATUS_BY_KIND = {
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INSUFFICIENT_STOCK: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CANCELLED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.PERSISTENCE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_for_failure(result: Result) -> None:
    if result.is_success:
        return
    error = result.error
    raise HTTPException(
        status_code=STATUS_BY_KIND[error.kind],
        detail={"code": error.code, "message": error.message, **dict(error.details)},
    )
