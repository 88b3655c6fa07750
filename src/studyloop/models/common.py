from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from ..errors import CoreError, InvalidReference, InvalidTransition


T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a core operation: either a value or a typed error.

    呼び出し側（UI 層）は例外ではなく戻り値で失敗を判定する。
    """

    value: T | None = None
    error: CoreError | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: CoreError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_invalid_reference(self) -> bool:
        return isinstance(self.error, InvalidReference)

    @property
    def is_invalid_transition(self) -> bool:
        return isinstance(self.error, InvalidTransition)

