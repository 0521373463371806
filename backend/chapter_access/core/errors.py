from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Optional, TypeVar

from fastapi import HTTPException, status

T = TypeVar("T")


class AccessErrorKind(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    MEMBER_NOT_FOUND = "member_not_found"
    NO_ROLE_ASSIGNMENTS = "no_role_assignments"
    MEMBERSHIP_EXPIRED = "membership_expired"
    BAD_REQUEST = "bad_request"
    FORBIDDEN = "forbidden"
    INTERNAL_ERROR = "internal_error"


STATUS_BY_KIND: Mapping[AccessErrorKind, int] = {
    AccessErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    AccessErrorKind.MEMBER_NOT_FOUND: status.HTTP_403_FORBIDDEN,
    AccessErrorKind.NO_ROLE_ASSIGNMENTS: status.HTTP_403_FORBIDDEN,
    AccessErrorKind.MEMBERSHIP_EXPIRED: status.HTTP_403_FORBIDDEN,
    AccessErrorKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    AccessErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    AccessErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass(frozen=True)
class AccessError:
    kind: AccessErrorKind
    message: str
    # correlation fields for logs (principal_id, resource_id, guard, ...)
    context: Mapping[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={"code": self.kind.value, "message": self.message},
        )


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a resolver, inference or guard call.

    Exactly one of `value` / `error` is meaningful: callers check `ok` and
    propagate `error` themselves instead of relying on exceptions.
    """

    value: Optional[T] = None
    error: Optional[AccessError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: AccessErrorKind, message: str, **context: Any) -> "Result[T]":
        return cls(error=AccessError(kind=kind, message=message, context=context))

    @classmethod
    def from_error(cls, error: AccessError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the mapped HTTPException (FastAPI edge only)."""
        if self.error is not None:
            raise self.error.to_http_exception()
        return self.value  # type: ignore[return-value]
