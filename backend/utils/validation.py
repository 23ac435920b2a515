# utils/validation.py
from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel, ValidationError

from utils.result import Result, validation_failed

M = TypeVar("M", bound=BaseModel)


def _describe(err: Mapping[str, Any]) -> str:
    loc = ".".join(str(part) for part in err.get("loc", ()))
    return f"{loc}: {err['msg']}" if loc else err["msg"]


def validate(schema: Type[M], data: Mapping[str, Any], code: str) -> Result[M]:
    """Validate ``data`` against ``schema``.

    All rule violations are joined into one message so callers get a single
    aggregated ``ValidationFailed`` error.
    """
    try:
        return Result.success(schema.model_validate(data))
    except ValidationError as exc:
        messages = [_describe(err) for err in exc.errors()]
        return Result.failure(validation_failed(code, "; ".join(messages)))
