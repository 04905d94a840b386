"""Success-or-failure values passed between the engine layers.

Providers, stores and the engine return ``Ok(value)`` or ``Err(error)``
instead of raising, with a ``RAGError`` as the error. The tool layer turns
an ``Err`` into an error response; the CLI and examples call ``unwrap()``,
which re-raises the contained error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")
F = TypeVar("F")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Operation succeeded with ``value``."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Transform the value."""
        return Ok(fn(self.value))

    def map_err(self, fn: Callable[[E], F]) -> Ok[T]:  # type: ignore[type-var]
        return self


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Operation failed with ``error``."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:  # type: ignore[type-var]
        """Raise the error; non-exception errors raise ValueError."""
        if isinstance(self.error, BaseException):
            raise self.error
        raise ValueError(f"Called unwrap on Err: {self.error}")

    def map(self, fn: Callable[[T], U]) -> Err[E]:  # type: ignore[type-var]
        return self

    def map_err(self, fn: Callable[[E], F]) -> Err[F]:
        """Replace the error, e.g. to add context from the calling layer."""
        return Err(fn(self.error))


Result = Union[Ok[T], Err[E]]
