"""
Membership Registry — the single authority over membership tokens.

All mutations go through this class:
    1. Call comes in with an explicit caller principal
    2. The call is captured as an OperationRequest
    3. The request runs through its ordered rule chain
    4. First failing rule -> rejected OperationResult, state untouched
    5. No failure -> the change is applied in one step
    6. An Attestation records the decision either way

Key principle:
    > A rejected call is indistinguishable from no call at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from .clock import HeightSource, ManualHeightSource
from .config import RegistryConfig
from .errors import SnapshotIntegrityError
from .invariants import RuleContext, check_state, first_failing_rule, list_rules
from .states import (
    Principal,
    RegistryState,
    Token,
    TokenId,
    append_to_index,
)
from .transitions import (
    InvariantViolation,
    OperationRequest,
    OperationResult,
    RegistryAction,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attestation:
    """
    Record of a registry decision.

    Every mutating call produces one, whether accepted or rejected.
    """
    id: str
    timestamp: datetime
    action: str
    caller: Principal | None
    arguments: dict[str, Any]
    height: int | None
    decision: str  # "accepted" or "rejected"
    value: Any = None
    error: str | None = None
    code: int | None = None
    rule_id: str | None = None
    request_id: str | None = None

    @property
    def accepted(self) -> bool:
        return self.decision == "accepted"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "caller": self.caller,
            "arguments": dict(self.arguments),
            "height": self.height,
            "decision": self.decision,
            "value": self.value,
            "error": self.error,
            "code": self.code,
            "rule_id": self.rule_id,
            "request_id": self.request_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attestation:
        timestamp = data.get("timestamp")
        return cls(
            id=data["id"],
            timestamp=(
                datetime.fromisoformat(timestamp)
                if timestamp
                else datetime.now(timezone.utc)
            ),
            action=data["action"],
            caller=data.get("caller"),
            arguments=dict(data.get("arguments", {})),
            height=data.get("height"),
            decision=data["decision"],
            value=data.get("value"),
            error=data.get("error"),
            code=data.get("code"),
            rule_id=data.get("rule_id"),
            request_id=data.get("request_id"),
        )

    @classmethod
    def from_result(cls, result: OperationResult) -> Attestation:
        request = result.request
        return cls(
            id=result.attestation_id,
            timestamp=request.timestamp,
            action=request.action.value,
            caller=request.caller,
            arguments=dict(request.arguments),
            height=request.height,
            decision="accepted" if result.ok else "rejected",
            value=result.value,
            error=result.error.label if result.error else None,
            code=result.code,
            rule_id=result.rule_id,
            request_id=request.request_id,
        )


class AttestationStore:
    """
    Append-only log of attestations.

    Attestations are immutable once stored and can be replayed to
    reconstruct a registry.
    """

    def __init__(self) -> None:
        self._attestations: list[Attestation] = []

    def record(self, attestation: Attestation) -> None:
        self._attestations.append(attestation)

    def query(
        self,
        caller: Principal | None = None,
        action: str | RegistryAction | None = None,
        decision: str | None = None,
        since: datetime | None = None,
    ) -> list[Attestation]:
        """Query attestations by criteria."""
        if isinstance(action, RegistryAction):
            action = action.value

        results = self._attestations
        if caller:
            results = [a for a in results if a.caller == caller]
        if action:
            results = [a for a in results if a.action == action]
        if decision:
            results = [a for a in results if a.decision == decision]
        if since:
            results = [a for a in results if a.timestamp >= since]
        return list(results)

    def all(self) -> list[Attestation]:
        return list(self._attestations)

    def count(self) -> int:
        return len(self._attestations)


def _require_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")


def _require_str(name: str, value: Any) -> None:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")


class MembershipRegistry:
    """
    Soulbound membership token registry.

    Usage:
        registry = MembershipRegistry()
        registry.bind_voting_authority("ST2VOTING")

        result = registry.mint(
            caller="ST2VOTING",
            recipient="ST3MEMBER",
            achievements_hash="abc123",
            induction_height=100,
        )
        if result.ok:
            token_id = result.value
        else:
            log.info(result.reason)
    """

    def __init__(
        self,
        config: RegistryConfig | None = None,
        heights: HeightSource | None = None,
        state: RegistryState | None = None,
    ) -> None:
        if config is None:
            config = RegistryConfig()
            if state is not None:
                config.mint_limit = state.mint_limit
        config.validate()
        self.config = config
        self.heights = heights or ManualHeightSource()
        # config.mint_limit is authoritative; the state mirrors it for snapshots
        self._state = state.copy() if state is not None else RegistryState()
        self._state.mint_limit = config.mint_limit
        self._attestation_store = AttestationStore()

    @property
    def attestation_store(self) -> AttestationStore:
        return self._attestation_store

    @property
    def state(self) -> RegistryState:
        """A copy of the current state."""
        return self._state.copy()

    # -------------------------------------------------------------------------
    # Authority binding
    # -------------------------------------------------------------------------

    def bind_voting_authority(self, principal: Principal) -> OperationResult[bool]:
        """Bind the minting authority. Succeeds at most once."""
        _require_str("principal", principal)
        request = OperationRequest(
            action=RegistryAction.BIND_VOTING_AUTHORITY,
            arguments={"principal": principal},
        )

        def apply() -> bool:
            self._state.voting_authority = principal
            return True

        return self._submit(request, apply)

    def bind_reputation_authority(self, principal: Principal) -> OperationResult[bool]:
        """Bind the reputation/status authority. Succeeds at most once."""
        _require_str("principal", principal)
        request = OperationRequest(
            action=RegistryAction.BIND_REPUTATION_AUTHORITY,
            arguments={"principal": principal},
        )

        def apply() -> bool:
            self._state.reputation_authority = principal
            return True

        return self._submit(request, apply)

    # -------------------------------------------------------------------------
    # Minting
    # -------------------------------------------------------------------------

    def mint(
        self,
        caller: Principal,
        recipient: Principal,
        achievements_hash: str,
        induction_height: int,
    ) -> OperationResult[TokenId]:
        """
        Mint a new membership token to ``recipient``.

        Returns the new token id on success. See invariants.RULE_CHAINS
        for the validation order.
        """
        _require_str("caller", caller)
        _require_str("recipient", recipient)
        _require_str("achievements_hash", achievements_hash)
        _require_int("induction_height", induction_height)

        request = OperationRequest(
            action=RegistryAction.MINT,
            caller=caller,
            arguments={
                "recipient": recipient,
                "achievements_hash": achievements_hash,
                "induction_height": induction_height,
            },
            height=self.heights.current_height(),
        )

        def apply() -> TokenId:
            state = self._state
            token_id = state.next_token_id
            token = Token(
                owner=recipient,
                achievements_hash=achievements_hash,
                induction_height=induction_height,
            )
            tracked = append_to_index(
                state.owner_index.get(recipient, []),
                token_id,
                self.config.owner_index_cap,
            )
            state.tokens[token_id] = token
            state.owner_index[recipient] = tracked
            state.next_token_id = token_id + 1
            return token_id

        return self._submit(request, apply)

    # -------------------------------------------------------------------------
    # Token mutation (reputation authority only)
    # -------------------------------------------------------------------------

    def update_reputation(
        self,
        caller: Principal,
        token_id: TokenId,
        new_score: int,
    ) -> OperationResult[bool]:
        """Replace a token's reputation score."""
        _require_str("caller", caller)
        _require_int("token_id", token_id)
        _require_int("new_score", new_score)

        request = OperationRequest(
            action=RegistryAction.UPDATE_REPUTATION,
            caller=caller,
            arguments={"token_id": token_id, "new_score": new_score},
        )

        def apply() -> bool:
            token = self._state.tokens[token_id]
            self._state.tokens[token_id] = replace(token, reputation_score=new_score)
            return True

        return self._submit(request, apply)

    def set_status(
        self,
        caller: Principal,
        token_id: TokenId,
        active: bool,
    ) -> OperationResult[bool]:
        """Mark a token active or inactive."""
        _require_str("caller", caller)
        _require_int("token_id", token_id)
        if not isinstance(active, bool):
            raise TypeError(f"active must be a bool, got {type(active).__name__}")

        request = OperationRequest(
            action=RegistryAction.SET_STATUS,
            caller=caller,
            arguments={"token_id": token_id, "active": active},
        )

        def apply() -> bool:
            token = self._state.tokens[token_id]
            self._state.tokens[token_id] = replace(token, active=active)
            return True

        return self._submit(request, apply)

    def transfer(
        self,
        token_id: TokenId,
        sender: Principal,
        recipient: Principal,
    ) -> OperationResult[bool]:
        """Always rejected with TransferDisallowed; tokens are soulbound."""
        request = OperationRequest(
            action=RegistryAction.TRANSFER,
            arguments={"token_id": token_id, "sender": sender, "recipient": recipient},
        )
        return self._submit(request, None)

    # -------------------------------------------------------------------------
    # Queries (never fail)
    # -------------------------------------------------------------------------

    def get_last_token_id(self) -> TokenId:
        return self._state.last_token_id

    def get_token_uri(self, token_id: TokenId) -> str | None:
        token = self._state.tokens.get(token_id)
        if token is None:
            return None
        return f"{self.config.uri_scheme}{token.achievements_hash}"

    def get_owner(self, token_id: TokenId) -> Principal | None:
        token = self._state.tokens.get(token_id)
        return token.owner if token else None

    def get_metadata(self, token_id: TokenId) -> Token | None:
        # Token is frozen; handing it out cannot leak a mutable reference.
        return self._state.tokens.get(token_id)

    def get_tokens_by_owner(self, principal: Principal) -> list[TokenId]:
        return list(self._state.owner_index.get(principal, []))

    def is_member(self, principal: Principal) -> bool:
        return bool(self._state.owner_index.get(principal))

    @property
    def voting_authority(self) -> Principal | None:
        return self._state.voting_authority

    @property
    def reputation_authority(self) -> Principal | None:
        return self._state.reputation_authority

    # -------------------------------------------------------------------------
    # Decision core
    # -------------------------------------------------------------------------

    def _submit(
        self,
        request: OperationRequest,
        apply: Callable[[], Any] | None,
    ) -> OperationResult:
        """Evaluate the rule chain, then apply or reject as a single step."""
        ctx = RuleContext(request=request, state=self._state, config=self.config)
        failed = first_failing_rule(ctx)

        if failed is not None or apply is None:
            error = failed.error if failed is not None else None
            result = OperationResult.failure(
                request, error, rule_id=failed.id if failed else None
            )
            logger.debug(
                "%s rejected by %s: %s (code %s)",
                request.action.value,
                result.rule_id,
                error.label if error else "unknown",
                result.code,
            )
        else:
            value = apply()
            result = OperationResult.success(request, value)
            logger.info(
                "%s accepted: caller=%s value=%s",
                request.action.value,
                request.caller,
                value,
            )

        if self.config.attestation_enabled:
            self._attestation_store.record(Attestation.from_result(result))
        return result

    # -------------------------------------------------------------------------
    # Snapshot, restore, replay
    # -------------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """JSON-compatible snapshot of the registry state."""
        return self._state.to_dict()

    @classmethod
    def from_snapshot(
        cls,
        data: dict[str, Any],
        config: RegistryConfig | None = None,
        heights: HeightSource | None = None,
    ) -> MembershipRegistry:
        """
        Restore a registry from ``snapshot()`` output.

        Without ``config`` the snapshot's mint limit is kept. An explicit
        ``config`` replaces it.

        Raises:
            SnapshotIntegrityError: The snapshot is malformed or breaks a
                structural invariant.
        """
        try:
            cap = config.owner_index_cap if config else RegistryConfig().owner_index_cap
            state = RegistryState.from_dict(data, owner_index_cap=cap)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Refusing malformed snapshot: %s", e)
            raise SnapshotIntegrityError(
                [InvariantViolation("snapshot.format", f"Malformed snapshot: {e}")]
            ) from e

        if config is None:
            config = RegistryConfig(mint_limit=max(state.mint_limit, 1))

        violations = check_state(state, config)
        if violations:
            logger.warning(
                "Refusing snapshot with %d invariant violation(s)", len(violations)
            )
            raise SnapshotIntegrityError(
                violations, details={"violations": [v.to_dict() for v in violations]}
            )

        return cls(config=config, heights=heights, state=state)

    def replay(
        self,
        attestations: Iterable[Attestation | dict[str, Any]],
    ) -> MembershipRegistry:
        """
        Re-execute accepted attestations against a fresh registry.

        Used for recovery and for checking determinism: replaying this
        registry's own log yields an identical snapshot.
        """
        heights = ManualHeightSource()
        replayed = MembershipRegistry(config=replace(self.config), heights=heights)

        for att in attestations:
            if isinstance(att, dict):
                att = Attestation.from_dict(att)
            if not att.accepted:
                continue
            if att.height is not None and att.height > heights.current_height():
                heights.set(att.height)
            replayed._dispatch(att.action, att.caller, att.arguments)

        return replayed

    def _dispatch(
        self,
        action: str | RegistryAction,
        caller: Principal | None,
        arguments: dict[str, Any],
    ) -> OperationResult:
        """Invoke the public operation named by ``action``."""
        action = RegistryAction(action)
        if action == RegistryAction.BIND_VOTING_AUTHORITY:
            return self.bind_voting_authority(arguments["principal"])
        if action == RegistryAction.BIND_REPUTATION_AUTHORITY:
            return self.bind_reputation_authority(arguments["principal"])
        if action == RegistryAction.MINT:
            return self.mint(
                caller,
                arguments["recipient"],
                arguments["achievements_hash"],
                arguments["induction_height"],
            )
        if action == RegistryAction.UPDATE_REPUTATION:
            return self.update_reputation(caller, arguments["token_id"], arguments["new_score"])
        if action == RegistryAction.SET_STATUS:
            return self.set_status(caller, arguments["token_id"], arguments["active"])
        return self.transfer(
            arguments.get("token_id"), arguments.get("sender"), arguments.get("recipient")
        )

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def verify(self) -> list[InvariantViolation]:
        """Check structural invariants on the live state."""
        return check_state(self._state, self.config)

    def list_rules(self) -> list[dict[str, Any]]:
        """List all validation rules in evaluation order."""
        return list_rules()
