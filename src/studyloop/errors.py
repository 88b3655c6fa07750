"""Error taxonomy.

`InvalidReference` / `InvalidTransition` are returned inside `Result` values
and never raised. `DeserializationError` is raised: a corrupt snapshot must be
rejected as a whole.
"""

from __future__ import annotations

from dataclasses import dataclass


class StudyloopError(Exception):
    """Base class for exceptions raised by studyloop."""


class DeserializationError(StudyloopError):
    """A persisted snapshot is corrupt or from an incompatible version.

    スナップショットが壊れている/互換性がない場合に送出する。部分的に壊れた
    間隔や EF を取り込むより、空のリポジトリから再開するほうが安全。
    """

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


@dataclass(frozen=True)
class InvalidReference:
    """Operation addressed an item or session that does not exist."""

    kind: str
    ref: str

    @property
    def message(self) -> str:
        return f"unknown {self.kind}: {self.ref}"


@dataclass(frozen=True)
class InvalidTransition:
    """Operation is not legal in the current session status."""

    operation: str
    status: str

    @property
    def message(self) -> str:
        return f"{self.operation} is not allowed while {self.status}"


CoreError = InvalidReference | InvalidTransition
