"""
Result type used as the error channel of every fallible operation.

``Success`` and ``Failure`` are frozen dataclasses sharing the ``Result``
base, so callers can either use the predicates/accessors or ``match`` on
the concrete variant.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from recipe_capture.domain.errors import ErrorKind, ResultAccessError

T = TypeVar("T")
U = TypeVar("U")


class Result(ABC, Generic[T]):
    """Tagged union of ``Success(value)`` or ``Failure(message, kind)``."""

    __slots__ = ()

    @staticmethod
    def success(value: Any = None) -> "Success[Any]":
        return Success(value)

    @staticmethod
    def failure(message: str, kind: ErrorKind = ErrorKind.UNEXPECTED) -> "Failure[Any]":
        return Failure(message, kind)

    @property
    def is_success(self) -> bool:
        return isinstance(self, Success)

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @property
    @abstractmethod
    def value(self) -> T: ...

    @property
    @abstractmethod
    def error(self) -> str: ...

    @property
    @abstractmethod
    def kind(self) -> ErrorKind: ...

    def value_or(self, default: T) -> T:
        """Returns the value on success, ``default`` otherwise."""
        return self.value if self.is_success else default

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        """Applies ``fn`` to the value of a success; failures pass through."""
        if isinstance(self, Failure):
            return Failure(self.message, self.error_kind)
        return Success(fn(self.value))

    def bind(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        """Chains another fallible step; failures pass through."""
        if isinstance(self, Failure):
            return Failure(self.message, self.error_kind)
        return fn(self.value)


@dataclass(frozen=True)
class Success(Result[T]):
    """A successful outcome holding ``payload``."""

    payload: T

    @property
    def value(self) -> T:
        return self.payload

    @property
    def error(self) -> str:
        raise ResultAccessError("Cannot read the error of a successful result")

    @property
    def kind(self) -> ErrorKind:
        raise ResultAccessError("Cannot read the error kind of a successful result")


@dataclass(frozen=True)
class Failure(Result[T]):
    """A failed outcome with a human-readable message and its kind."""

    message: str
    error_kind: ErrorKind = ErrorKind.UNEXPECTED

    @property
    def value(self) -> T:
        raise ResultAccessError(f"Cannot read the value of a failed result: {self.message}")

    @property
    def error(self) -> str:
        return self.message

    @property
    def kind(self) -> ErrorKind:
        return self.error_kind
