"""Tagged result type used by probes and the settle-all join."""

import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from walletsync.errors import ErrorKind, WalletSyncError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying data."""

    data: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying an error kind and a human-readable detail."""

    kind: ErrorKind
    detail: str
    retryable: bool = False

    @property
    def is_ok(self) -> bool:
        return False

    @classmethod
    def from_exception(cls, exc: BaseException) -> "Err":
        """Build an Err from any exception."""
        if isinstance(exc, WalletSyncError):
            return cls(kind=exc.kind, detail=str(exc), retryable=exc.retryable)
        return cls(kind=ErrorKind.UNEXPECTED, detail=f"{type(exc).__name__}: {exc}")

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "detail": self.detail, "retryable": self.retryable}


Result = Union[Ok[T], Err]


def settle(outcome: Any) -> Union[Ok, Err]:
    """Normalise one entry of ``asyncio.gather(..., return_exceptions=True)``.

    Exceptions become ``Err``; results that are already tagged pass through;
    anything else is wrapped in ``Ok``.
    """
    if isinstance(outcome, BaseException):
        return Err.from_exception(outcome)
    if isinstance(outcome, (Ok, Err)):
        return outcome
    return Ok(outcome)
