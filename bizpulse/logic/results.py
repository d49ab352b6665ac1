"""Typed outcomes for validation and service calls."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True, slots=True)
class Valid:
    ok: bool = True


@dataclass(frozen=True, slots=True)
class Invalid:
    field: str
    code: str
    message: str
    kind: ErrorKind = ErrorKind.VALIDATION
    ok: bool = False

    def as_dict(self) -> dict[str, str]:
        return {
            "field": self.field,
            "code": self.code,
            "message": self.message,
            "kind": self.kind.value,
        }


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T
    ok: bool = True


ValidationResult = Union[Valid, Invalid]
Result = Union[Ok[T], Invalid]

VALID = Valid()


def first_invalid(*results: ValidationResult) -> ValidationResult:
    for result in results:
        if isinstance(result, Invalid):
            return result
    return VALID
