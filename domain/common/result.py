"""Tagged success/failure values for operations where partial failure is expected.

Use ``match`` at call sites::

    match outcome:
        case Ok(value):
            ...
        case Err(error):
            ...
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    @property
    def is_ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]

__all__ = ["Ok", "Err", "Result"]
