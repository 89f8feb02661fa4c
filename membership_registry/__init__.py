"""
Membership Registry v1.0 - Soulbound membership tokens with governed authorities.

Architecture:
    caller -> MembershipRegistry -> rule chain -> state (or no-op)

Public API (stable):
    MembershipRegistry  - The registry. Mint, query, update reputation/status.
    RegistryConfig      - Mint limit, URI scheme, owner index cap.
    OperationResult     - Returned by every mutating call (.ok, .value, .error).
    ErrorKind           - Typed rejection reasons with numeric .code.
    ManualHeightSource  - In-memory block height for tests and scripts.

Internals (for advanced users):
    membership_registry.registry.invariants  - rule chains, structural invariants
    membership_registry.registry.states      - Token, RegistryState, snapshots
    membership_registry.adapters.cli         - `membership-registry` command
    membership_registry.testing              - assertions and scenario helpers

Example:
    from membership_registry import MembershipRegistry

    registry = MembershipRegistry()
    registry.bind_voting_authority("ST2VOTING")
    result = registry.mint("ST2VOTING", "ST3MEMBER", "abc123", 100)
    print(result.value, registry.get_token_uri(result.value))
"""

__version__ = "1.0.0"

from membership_registry.registry import (
    NULL_PRINCIPAL,
    Attestation,
    AttestationStore,
    ConfigurationError,
    ErrorKind,
    HeightSource,
    ManualHeightSource,
    MembershipRegistry,
    OperationResult,
    RegistryAction,
    RegistryConfig,
    RegistryError,
    RegistryOperationError,
    SnapshotIntegrityError,
    Token,
)

__all__ = [
    "__version__",
    "MembershipRegistry",
    "RegistryConfig",
    "OperationResult",
    "RegistryAction",
    "ErrorKind",
    "Token",
    "NULL_PRINCIPAL",
    "HeightSource",
    "ManualHeightSource",
    "Attestation",
    "AttestationStore",
    "RegistryError",
    "RegistryOperationError",
    "SnapshotIntegrityError",
    "ConfigurationError",
]
