"""
Operation outcomes returned by services.

Every service call returns exactly one of:
- Ok: the call succeeded (payload may be None for empty successes)
- Domain: an expected condition (not found, invalid input) safe to show a caller
- Unexpected: a fault from a dependency; logged, never shown to a caller
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class ErrorInfo:
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class Ok(Generic[T]):
    payload: T


@dataclass(frozen=True)
class Domain:
    error: ErrorInfo


@dataclass(frozen=True)
class Unexpected:
    fault: BaseException

    @property
    def fault_type(self) -> str:
        return type(self.fault).__name__


Outcome = Union[Ok[Any], Domain, Unexpected]


def domain(code: str, message: str) -> Domain:
    return Domain(ErrorInfo(code=code, message=message))
