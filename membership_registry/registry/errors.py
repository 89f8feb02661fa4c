"""
Registry Errors — Error kinds, numeric codes and exception types.

Rule outcomes are NOT exceptions. A rejected operation returns an
OperationResult carrying an ErrorKind; the numeric code is what
collaborators see on the wire.

Error hierarchy (raised only for programming/collaborator faults):
    RegistryError (base)
    ├── RegistryOperationError   (OperationResult.unwrap() on failure)
    ├── SnapshotIntegrityError   (restoring a corrupt snapshot)
    └── ConfigurationError       (invalid RegistryConfig)
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Typed rejection reasons returned by mutating operations."""
    NOT_AUTHORIZED = "not_authorized"
    INVALID_METADATA = "invalid_metadata"
    ALREADY_MINTED = "already_minted"
    TOKEN_NOT_FOUND = "token_not_found"
    TRANSFER_DISALLOWED = "transfer_disallowed"
    INVALID_VOTING_AUTHORITY = "invalid_voting_authority"
    NO_VOTING_AUTHORITY = "no_voting_authority"
    INVALID_TOKEN_ID = "invalid_token_id"
    INVALID_RECIPIENT = "invalid_recipient"
    INVALID_REPUTATION_AUTHORITY = "invalid_reputation_authority"
    NO_AUTHORITY = "no_authority"
    MINT_LIMIT_REACHED = "mint_limit_reached"
    ALREADY_BOUND = "already_bound"

    @property
    def code(self) -> int:
        """Numeric code exposed to collaborators."""
        return ERROR_CODES[self]

    @property
    def label(self) -> str:
        """CamelCase name, e.g. ``MintLimitReached``."""
        return "".join(part.capitalize() for part in self.value.split("_"))


# A missing authority shares its code with the invalid-binding error
# of the same authority.
ERROR_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_AUTHORIZED: 100,
    ErrorKind.INVALID_METADATA: 101,
    ErrorKind.ALREADY_MINTED: 102,
    ErrorKind.TOKEN_NOT_FOUND: 103,
    ErrorKind.TRANSFER_DISALLOWED: 104,
    ErrorKind.INVALID_VOTING_AUTHORITY: 105,
    ErrorKind.NO_VOTING_AUTHORITY: 105,
    ErrorKind.INVALID_TOKEN_ID: 106,
    ErrorKind.INVALID_RECIPIENT: 107,
    ErrorKind.INVALID_REPUTATION_AUTHORITY: 108,
    ErrorKind.NO_AUTHORITY: 108,
    ErrorKind.MINT_LIMIT_REACHED: 109,
    ErrorKind.ALREADY_BOUND: 110,
}


def list_error_codes() -> list[dict[str, Any]]:
    """List every error kind with its code, ordered by code."""
    return sorted(
        (
            {"kind": kind.label, "value": kind.value, "code": kind.code}
            for kind in ErrorKind
        ),
        key=lambda entry: (entry["code"], entry["kind"]),
    )


class RegistryError(Exception):
    """Base error for all registry-related errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RegistryOperationError(RegistryError):
    """
    Raised when a failed OperationResult is unwrapped.

    The registry itself never raises this; callers that prefer
    exceptions over result inspection opt in via ``unwrap()``.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message or f"{kind.label} (code {kind.code})", details)
        self.kind = kind
        self.code = kind.code


class SnapshotIntegrityError(RegistryError):
    """
    Raised when a snapshot violates structural invariants.

    A registry restored from such a snapshot could hand out a reused
    token id or report a wrong owner, so restore refuses it outright.
    """

    def __init__(
        self,
        violations: list[Any],
        details: dict[str, Any] | None = None,
    ):
        messages = "; ".join(getattr(v, "message", str(v)) for v in violations)
        super().__init__(f"Snapshot failed integrity checks: {messages}", details)
        self.violations = list(violations)


class ConfigurationError(RegistryError):
    """Raised for invalid registry configuration values."""

    def __init__(self, field_name: str, message: str):
        super().__init__(f"Invalid config '{field_name}': {message}")
        self.field_name = field_name
