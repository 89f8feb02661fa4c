"""
Membership Registry Module — soulbound membership token state machine.

Provides:
- Sequential token id allocation (1, 2, 3, ... never reused)
- One-time binding of the voting (mint) and reputation authorities
- Ordered, fail-closed validation of every mutating call
- Typed results instead of exceptions for rule outcomes
- Attestations, snapshots and replay

Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                MembershipRegistry                   │
    │  - explicit caller on every operation               │
    │  - OperationRequest -> rule chain -> apply/reject   │
    │  - AttestationStore (every decision)                │
    └──────────────┬───────────────────────┬──────────────┘
                   │                       │
                   ▼                       ▼
    ┌──────────────────────────┐ ┌──────────────────────────┐
    │  Rules & Invariants      │ │  HeightSource            │
    │  - RULE_CHAINS per op    │ │  - current block height  │
    │  - STATE_INVARIANTS      │ │  - ManualHeightSource    │
    └──────────────────────────┘ └──────────────────────────┘
"""

from .clock import HeightSource, ManualHeightSource
from .config import RegistryConfig
from .registry import Attestation, AttestationStore, MembershipRegistry
from .states import NULL_PRINCIPAL, Principal, RegistryState, Token, TokenId
from .transitions import (
    InvariantViolation,
    OperationRequest,
    OperationResult,
    RegistryAction,
)
from .invariants import (
    RULE_CHAINS,
    STATE_INVARIANTS,
    OperationRule,
    StateInvariant,
    check_state,
    list_rules,
)
from .errors import (
    ERROR_CODES,
    ConfigurationError,
    ErrorKind,
    RegistryError,
    RegistryOperationError,
    SnapshotIntegrityError,
    list_error_codes,
)

__all__ = [
    # Registry
    "MembershipRegistry",
    "RegistryConfig",
    # Block height collaborator
    "HeightSource",
    "ManualHeightSource",
    # State
    "RegistryState",
    "Token",
    "Principal",
    "TokenId",
    "NULL_PRINCIPAL",
    # Requests and results
    "RegistryAction",
    "OperationRequest",
    "OperationResult",
    "InvariantViolation",
    # Rules and invariants
    "RULE_CHAINS",
    "STATE_INVARIANTS",
    "OperationRule",
    "StateInvariant",
    "check_state",
    "list_rules",
    # Attestations
    "Attestation",
    "AttestationStore",
    # Errors
    "ErrorKind",
    "ERROR_CODES",
    "list_error_codes",
    "RegistryError",
    "RegistryOperationError",
    "SnapshotIntegrityError",
    "ConfigurationError",
]
