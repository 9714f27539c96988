"""Success/failure result type for repository calls that must not raise."""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E", bound=Exception)


class Fallible(Generic[T, E]):
    """Holds either a value or an error, never both."""

    __slots__ = ("_value", "_error")

    def __init__(self, value: T | None = None, error: E | None = None) -> None:
        self._value = value
        self._error = error

    @classmethod
    def ok(cls, value: T) -> "Fallible[T, E]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: E) -> "Fallible[T, E]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def get_value(self) -> T:
        """Return the value, raising the held error if this is a failure."""
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def get_error(self) -> E:
        if self._error is None:
            raise ValueError("Fallible holds a value, not an error")
        return self._error

    def __repr__(self) -> str:
        if self.is_ok():
            return f"Fallible.ok({self._value!r})"
        return f"Fallible.fail({self._error!r})"
