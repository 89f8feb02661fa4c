"""
Registry Rules and Structural Invariants

Two layers guard the registry:

Operation rules (evaluated per request, in order, first failure wins):
    Binding:
        - binding.authority.not_null
        - binding.authority.unbound
    Mint:
        - mint.limit
        - mint.voting_authority.bound
        - mint.voting_authority.caller
        - mint.recipient.not_null
        - mint.metadata.valid
        - mint.token_id.fresh
    Token mutation (update_reputation, set_status):
        - token.reputation_authority.bound
        - token.reputation_authority.caller
        - token.id.allocated
        - token.exists
    Transfer:
        - transfer.disallowed

Structural invariants (evaluated against a whole state, used when
restoring snapshots and by ``MembershipRegistry.verify``):
    - state.ids.contiguous
    - state.authorities.not_null
    - state.tokens.metadata
    - state.owner_index.consistent

Rules read state; they never write it. A rejected request has
therefore touched nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .config import RegistryConfig
from .errors import ErrorKind
from .states import RegistryState, rebuild_owner_index
from .transitions import InvariantViolation, OperationRequest, RegistryAction


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may look at: the request, the state, the config."""
    request: OperationRequest
    state: RegistryState
    config: RegistryConfig

    def arg(self, name: str, default: Any = None) -> Any:
        return self.request.arguments.get(name, default)


@runtime_checkable
class OperationRule(Protocol):
    """
    Protocol for operation rules.

    Each rule:
    - Has a unique ID (namespaced by operation)
    - Maps to exactly one ErrorKind
    - Passes or fails a request against the current state
    """

    @property
    def id(self) -> str:
        ...

    @property
    def description(self) -> str:
        ...

    @property
    def error(self) -> ErrorKind:
        ...

    def passes(self, ctx: RuleContext) -> bool:
        ...


@dataclass(frozen=True)
class BaseRule(ABC):
    """Base class for operation rules."""

    @property
    @abstractmethod
    def id(self) -> str:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def error(self) -> ErrorKind:
        ...

    @abstractmethod
    def passes(self, ctx: RuleContext) -> bool:
        ...


# =============================================================================
# Binding Rules
# =============================================================================

_AUTHORITY_FIELDS = {
    RegistryAction.BIND_VOTING_AUTHORITY: "voting_authority",
    RegistryAction.BIND_REPUTATION_AUTHORITY: "reputation_authority",
}


@dataclass(frozen=True)
class AuthorityNotNullRule(BaseRule):
    """The null principal can never be bound as an authority."""

    invalid_error: ErrorKind = ErrorKind.INVALID_VOTING_AUTHORITY

    @property
    def id(self) -> str:
        return "binding.authority.not_null"

    @property
    def description(self) -> str:
        return "Authority principal must not be the null principal"

    @property
    def error(self) -> ErrorKind:
        return self.invalid_error

    def passes(self, ctx: RuleContext) -> bool:
        return ctx.arg("principal") != ctx.config.null_principal


@dataclass(frozen=True)
class AuthorityUnboundRule(BaseRule):
    """
    An authority transitions unset -> set at most once.

    The field is chosen from the request action, so the same rule
    guards both bindings independently.
    """

    @property
    def id(self) -> str:
        return "binding.authority.unbound"

    @property
    def description(self) -> str:
        return "Authority may be bound only once"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.ALREADY_BOUND

    def passes(self, ctx: RuleContext) -> bool:
        field_name = _AUTHORITY_FIELDS[ctx.request.action]
        return getattr(ctx.state, field_name) is None


# =============================================================================
# Mint Rules
# =============================================================================

@dataclass(frozen=True)
class MintLimitRule(BaseRule):
    """Checked first: a full registry refuses every mint, authorized or not."""

    @property
    def id(self) -> str:
        return "mint.limit"

    @property
    def description(self) -> str:
        return "next_token_id must be below mint_limit"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.MINT_LIMIT_REACHED

    def passes(self, ctx: RuleContext) -> bool:
        return ctx.state.next_token_id < ctx.config.mint_limit


@dataclass(frozen=True)
class VotingAuthorityBoundRule(BaseRule):

    @property
    def id(self) -> str:
        return "mint.voting_authority.bound"

    @property
    def description(self) -> str:
        return "A voting authority must be bound before minting"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.NO_VOTING_AUTHORITY

    def passes(self, ctx: RuleContext) -> bool:
        return ctx.state.voting_authority is not None


@dataclass(frozen=True)
class CallerIsVotingAuthorityRule(BaseRule):

    @property
    def id(self) -> str:
        return "mint.voting_authority.caller"

    @property
    def description(self) -> str:
        return "Only the voting authority may mint"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.NOT_AUTHORIZED

    def passes(self, ctx: RuleContext) -> bool:
        return ctx.request.caller == ctx.state.voting_authority


@dataclass(frozen=True)
class RecipientNotNullRule(BaseRule):

    @property
    def id(self) -> str:
        return "mint.recipient.not_null"

    @property
    def description(self) -> str:
        return "Tokens cannot be minted to the null principal"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.INVALID_RECIPIENT

    def passes(self, ctx: RuleContext) -> bool:
        return ctx.arg("recipient") != ctx.config.null_principal


@dataclass(frozen=True)
class MetadataRule(BaseRule):
    """
    Achievements hash must be non-empty and the induction height must
    not lie before the current block height.
    """

    @property
    def id(self) -> str:
        return "mint.metadata.valid"

    @property
    def description(self) -> str:
        return "Non-empty achievements hash and induction_height >= current height"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.INVALID_METADATA

    def passes(self, ctx: RuleContext) -> bool:
        if not ctx.arg("achievements_hash"):
            return False
        return ctx.arg("induction_height") >= ctx.request.height


@dataclass(frozen=True)
class FreshTokenIdRule(BaseRule):
    """Unreachable while ids stay contiguous; kept so mint is total."""

    @property
    def id(self) -> str:
        return "mint.token_id.fresh"

    @property
    def description(self) -> str:
        return "The next token id must not already be minted"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.ALREADY_MINTED

    def passes(self, ctx: RuleContext) -> bool:
        return ctx.state.next_token_id not in ctx.state.tokens


# =============================================================================
# Token Mutation Rules
# =============================================================================

@dataclass(frozen=True)
class ReputationAuthorityBoundRule(BaseRule):

    @property
    def id(self) -> str:
        return "token.reputation_authority.bound"

    @property
    def description(self) -> str:
        return "A reputation authority must be bound before token mutation"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.NO_AUTHORITY

    def passes(self, ctx: RuleContext) -> bool:
        return ctx.state.reputation_authority is not None


@dataclass(frozen=True)
class CallerIsReputationAuthorityRule(BaseRule):

    @property
    def id(self) -> str:
        return "token.reputation_authority.caller"

    @property
    def description(self) -> str:
        return "Only the reputation authority may mutate tokens"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.NOT_AUTHORIZED

    def passes(self, ctx: RuleContext) -> bool:
        return ctx.request.caller == ctx.state.reputation_authority


@dataclass(frozen=True)
class TokenIdAllocatedRule(BaseRule):

    @property
    def id(self) -> str:
        return "token.id.allocated"

    @property
    def description(self) -> str:
        return "Token id must have been allocated (id < next_token_id)"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.INVALID_TOKEN_ID

    def passes(self, ctx: RuleContext) -> bool:
        return ctx.arg("token_id") < ctx.state.next_token_id


@dataclass(frozen=True)
class TokenExistsRule(BaseRule):
    """Catches ids below next_token_id that hold no token (0, negatives)."""

    @property
    def id(self) -> str:
        return "token.exists"

    @property
    def description(self) -> str:
        return "Token must exist"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.TOKEN_NOT_FOUND

    def passes(self, ctx: RuleContext) -> bool:
        return ctx.arg("token_id") in ctx.state.tokens


# =============================================================================
# Transfer Rule
# =============================================================================

@dataclass(frozen=True)
class TransferDisallowedRule(BaseRule):
    """Membership tokens are soulbound. No request ever passes."""

    @property
    def id(self) -> str:
        return "transfer.disallowed"

    @property
    def description(self) -> str:
        return "Tokens are non-transferable"

    @property
    def error(self) -> ErrorKind:
        return ErrorKind.TRANSFER_DISALLOWED

    def passes(self, ctx: RuleContext) -> bool:
        return False


# =============================================================================
# Rule Chains
# =============================================================================

_TOKEN_MUTATION_RULES: list[OperationRule] = [
    ReputationAuthorityBoundRule(),
    CallerIsReputationAuthorityRule(),
    TokenIdAllocatedRule(),
    TokenExistsRule(),
]

RULE_CHAINS: dict[RegistryAction, list[OperationRule]] = {
    RegistryAction.BIND_VOTING_AUTHORITY: [
        AuthorityNotNullRule(ErrorKind.INVALID_VOTING_AUTHORITY),
        AuthorityUnboundRule(),
    ],
    RegistryAction.BIND_REPUTATION_AUTHORITY: [
        AuthorityNotNullRule(ErrorKind.INVALID_REPUTATION_AUTHORITY),
        AuthorityUnboundRule(),
    ],
    RegistryAction.MINT: [
        MintLimitRule(),
        VotingAuthorityBoundRule(),
        CallerIsVotingAuthorityRule(),
        RecipientNotNullRule(),
        MetadataRule(),
        FreshTokenIdRule(),
    ],
    RegistryAction.UPDATE_REPUTATION: list(_TOKEN_MUTATION_RULES),
    RegistryAction.SET_STATUS: list(_TOKEN_MUTATION_RULES),
    RegistryAction.TRANSFER: [TransferDisallowedRule()],
}


def first_failing_rule(ctx: RuleContext) -> OperationRule | None:
    """Return the first rule of the request's chain that fails, or None."""
    for rule in RULE_CHAINS[ctx.request.action]:
        if not rule.passes(ctx):
            return rule
    return None


def list_rules() -> list[dict[str, Any]]:
    """List every operation rule in evaluation order."""
    return [
        {
            "operation": action.value,
            "order": position,
            "id": rule.id,
            "description": rule.description,
            "error": rule.error.label,
            "code": rule.error.code,
        }
        for action, rules in RULE_CHAINS.items()
        for position, rule in enumerate(rules, start=1)
    ]


# =============================================================================
# Structural Invariants
# =============================================================================

class StateInvariant(ABC):
    """A property every reachable RegistryState satisfies."""

    id: str = ""
    description: str = ""

    @abstractmethod
    def check(self, state: RegistryState, config: RegistryConfig) -> list[InvariantViolation]:
        ...

    def _violation(self, message: str) -> InvariantViolation:
        return InvariantViolation(invariant_id=self.id, message=message)


class ContiguousIdsInvariant(StateInvariant):
    id = "state.ids.contiguous"
    description = "Minted ids are exactly 1..next_token_id-1"

    def check(self, state: RegistryState, config: RegistryConfig) -> list[InvariantViolation]:
        if state.next_token_id < 1:
            return [self._violation(f"next_token_id must be >= 1, got {state.next_token_id}")]
        expected = set(range(1, state.next_token_id))
        actual = set(state.tokens)
        violations = []
        missing = sorted(expected - actual)
        extra = sorted(actual - expected)
        if missing:
            violations.append(self._violation(f"Allocated ids without a token: {missing}"))
        if extra:
            violations.append(self._violation(f"Tokens outside the allocated range: {extra}"))
        return violations


class AuthoritiesNotNullInvariant(StateInvariant):
    id = "state.authorities.not_null"
    description = "No authority is bound to the null principal"

    def check(self, state: RegistryState, config: RegistryConfig) -> list[InvariantViolation]:
        violations = []
        for field_name in ("voting_authority", "reputation_authority"):
            value = getattr(state, field_name)
            if value is not None and (value == config.null_principal or not value):
                violations.append(self._violation(f"{field_name} is bound to {value!r}"))
        return violations


class TokenMetadataInvariant(StateInvariant):
    id = "state.tokens.metadata"
    description = "Every token has a real owner and a non-empty achievements hash"

    def check(self, state: RegistryState, config: RegistryConfig) -> list[InvariantViolation]:
        violations = []
        for token_id, token in sorted(state.tokens.items()):
            if not token.achievements_hash:
                violations.append(self._violation(f"Token {token_id} has an empty achievements hash"))
            if not token.owner or token.owner == config.null_principal:
                violations.append(self._violation(f"Token {token_id} has invalid owner {token.owner!r}"))
        return violations


class OwnerIndexConsistentInvariant(StateInvariant):
    """
    The owner index equals the index rebuilt from tokens.

    This pins ownership (every indexed id belongs to its key), order
    (mint order), and the keep-first-N truncation at once.
    """
    id = "state.owner_index.consistent"
    description = "Owner index matches tokens under the first-N policy"

    def check(self, state: RegistryState, config: RegistryConfig) -> list[InvariantViolation]:
        expected = rebuild_owner_index(state.tokens, config.owner_index_cap)
        violations = []
        for principal in sorted(set(expected) | set(state.owner_index)):
            have = state.owner_index.get(principal, [])
            want = expected.get(principal, [])
            if have != want:
                violations.append(self._violation(
                    f"Owner index for {principal} is {have}, expected {want}"
                ))
        return violations


STATE_INVARIANTS: list[StateInvariant] = [
    ContiguousIdsInvariant(),
    AuthoritiesNotNullInvariant(),
    TokenMetadataInvariant(),
    OwnerIndexConsistentInvariant(),
]


def check_state(state: RegistryState, config: RegistryConfig) -> list[InvariantViolation]:
    """Run every structural invariant against a state."""
    violations: list[InvariantViolation] = []
    for invariant in STATE_INVARIANTS:
        violations.extend(invariant.check(state, config))
    return violations
