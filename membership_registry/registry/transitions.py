"""
Registry Operations — Requests and typed results.

Every mutating call is captured as an OperationRequest. The registry
evaluates the request against the ordered rules for its action and
answers with an OperationResult:
    - ok=True:  value is the success value (token id or True)
    - ok=False: error is the first failing ErrorKind, value is None
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import uuid4

from .errors import ErrorKind, RegistryOperationError
from .states import Principal

T = TypeVar("T")


class RegistryAction(Enum):
    """Mutating registry operations."""
    BIND_VOTING_AUTHORITY = "bind_voting_authority"
    BIND_REPUTATION_AUTHORITY = "bind_reputation_authority"
    MINT = "mint"
    UPDATE_REPUTATION = "update_reputation"
    SET_STATUS = "set_status"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class OperationRequest:
    """
    A mutating call as submitted to the registry.

    ``caller`` is None for operations that take no invoking principal
    (authority binding and transfer).
    """
    action: RegistryAction
    caller: Principal | None = None
    arguments: dict[str, Any] = field(default_factory=dict)
    height: int | None = None

    request_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class OperationResult(Generic[T]):
    """Decision returned by every mutating registry operation."""
    ok: bool
    request: OperationRequest
    value: T | None = None
    error: ErrorKind | None = None
    rule_id: str | None = None

    attestation_id: str = field(default_factory=lambda: str(uuid4()))

    @classmethod
    def success(cls, request: OperationRequest, value: T) -> OperationResult[T]:
        return cls(ok=True, request=request, value=value)

    @classmethod
    def failure(
        cls,
        request: OperationRequest,
        error: ErrorKind,
        rule_id: str | None = None,
    ) -> OperationResult[T]:
        return cls(ok=False, request=request, error=error, rule_id=rule_id)

    @property
    def code(self) -> int | None:
        return self.error.code if self.error else None

    @property
    def reason(self) -> str:
        """Human-readable reason for the decision."""
        if self.ok:
            return f"{self.request.action.value} accepted"
        return f"{self.request.action.value} rejected: {self.error.label} (code {self.code})"

    def unwrap(self) -> T:
        """Return the success value or raise RegistryOperationError."""
        if not self.ok:
            raise RegistryOperationError(
                self.error,
                details={"action": self.request.action.value, "rule": self.rule_id},
            )
        return self.value

    def as_pair(self) -> tuple[bool, Any]:
        """Wire form: ``(True, value)`` or ``(False, code)``."""
        if self.ok:
            return True, self.value
        return False, self.code


@dataclass
class InvariantViolation:
    """Record of a structural invariant violation found in a state."""
    invariant_id: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "invariant_id": self.invariant_id,
            "message": self.message,
        }
