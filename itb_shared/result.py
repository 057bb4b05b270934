"""
Result pattern for error handling without exceptions.
Engine entry points and route helpers return Result[T] instead of raising.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from .types import ErrorCode

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """
    Result pattern for safe error handling.

    Usage:
        def extract(raw: str) -> Result[dict]:
            if not raw:
                return Result.Err(ErrorCode.INVALID_INPUT, "Empty metadata")
            return Result.Ok({"Prompt": raw})
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: str = "OK"  # OK, INVALID_INPUT, INVALID_JSON, METADATA_FAILED
    meta: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def Ok(data: T, **meta: Any) -> "Result[T]":
        return Result(ok=True, data=data, code="OK", meta=meta)

    @staticmethod
    def Err(code: ErrorCode | str | Enum, error: str, **meta: Any) -> "Result[T]":
        try:
            code_value = code.value if isinstance(code, Enum) else code
        except Exception:
            code_value = code
        return Result(ok=False, error=error, code=str(code_value), meta=meta)

    def unwrap_or(self, default: T) -> T:
        return self.data if (self.ok and self.data is not None) else default
