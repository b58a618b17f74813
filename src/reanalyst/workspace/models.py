"""Workspace models - tagged resolution outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from reanalyst.core.errors import InternalError

T = TypeVar("T")


@dataclass(frozen=True)
class Resolution(Generic[T]):
    """Outcome of a filesystem lookup.

    ``found`` carries a value; ``not_found`` means every strategy came up
    empty; ``error`` means a file existed but could not be read or parsed.
    """

    status: Literal["found", "not_found", "error"]
    value: T | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "found"

    @classmethod
    def found(cls, value: T) -> Resolution[T]:
        return cls(status="found", value=value)

    @classmethod
    def not_found(cls, reason: str) -> Resolution[T]:
        return cls(status="not_found", reason=reason)

    @classmethod
    def error(cls, reason: str) -> Resolution[T]:
        return cls(status="error", reason=reason)

    def unwrap(self) -> T:
        """Return the value. Callers check ``ok`` first; anything else is a bug.

        Raises:
            InternalError: Nothing was found.
        """
        if self.status != "found" or self.value is None:
            raise InternalError.unexpected(
                f"unwrapped a {self.status} resolution", reason=self.reason
            )
        return self.value
