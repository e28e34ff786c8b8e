"""Tagged success/failure values returned by every fallible operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from .errors import ErrorCode, SyncFailure

T = TypeVar("T")
E = TypeVar("E")


class UnwrapError(RuntimeError):
    """Raised when a result is unwrapped on the wrong branch."""


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self):
        raise UnwrapError(f"Called unwrap_err on {self!r}")


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise UnwrapError(f"Called unwrap on {self!r}")

    def unwrap_err(self) -> E:
        return self.error


Result = Union[Ok[T], Err[E]]


def failure(code: ErrorCode, detail: object | None = None) -> Err[SyncFailure]:
    """Shortcut for ``Err(SyncFailure(code, detail))``."""

    return Err(SyncFailure(code, str(detail) if detail is not None else None))


__all__ = ["Ok", "Err", "Result", "UnwrapError", "failure"]
