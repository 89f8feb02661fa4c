"""
Registry State Models — Tokens and the registry state container.

RegistryState is the single owner of all mutable data:
    - id allocation (next_token_id)
    - one-time authority bindings
    - tokens (id -> Token)
    - owner_index (principal -> first tracked ids)

The owner index is derived state. It can always be rebuilt from
``tokens`` with ``rebuild_owner_index``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Type aliases for collaborator-supplied identifiers
Principal = str
TokenId = int

# Well-known null/burn principal; never a valid binding or recipient.
NULL_PRINCIPAL: Principal = "SP000000000000000000002Q6VF78"

DEFAULT_MINT_LIMIT = 1000
DEFAULT_OWNER_INDEX_CAP = 10
SNAPSHOT_VERSION = "1"

_REQUIRED = object()


def _typed(
    data: dict[str, Any],
    key: str,
    kind: type | tuple[type, ...],
    default: Any = _REQUIRED,
) -> Any:
    """
    Read ``data[key]`` and require an instance of ``kind``.

    bool is not accepted where an int is expected. Raises KeyError for a
    missing required key and TypeError for a wrong type.
    """
    value = data[key] if default is _REQUIRED else data.get(key, default)
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        expected = kind.__name__ if isinstance(kind, type) else "/".join(k.__name__ for k in kind)
        raise TypeError(f"{key} must be {expected}, got {type(value).__name__}")
    return value


def _optional_principal(data: dict[str, Any], key: str) -> Principal | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"{key} must be str or null, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class Token:
    """
    A soulbound membership token.

    Frozen: mutations build a replacement record with
    ``dataclasses.replace`` which the registry swaps in as one step.
    ``owner``, ``achievements_hash`` and ``induction_height`` are never
    replaced after mint.
    """
    owner: Principal
    achievements_hash: str
    induction_height: int
    reputation_score: int = 0
    active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "achievements_hash": self.achievements_hash,
            "induction_height": self.induction_height,
            "reputation_score": self.reputation_score,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Token:
        """Parse a snapshot record. Values are type-checked, never coerced."""
        if not isinstance(data, dict):
            raise TypeError(f"token record must be an object, got {type(data).__name__}")
        return cls(
            owner=_typed(data, "owner", str),
            achievements_hash=_typed(data, "achievements_hash", str),
            induction_height=_typed(data, "induction_height", int),
            reputation_score=_typed(data, "reputation_score", int, 0),
            active=_typed(data, "active", bool, True),
        )


@dataclass
class RegistryState:
    """
    Complete registry state.

    Only MembershipRegistry mutates this object; readers get copies.
    """
    next_token_id: TokenId = 1
    mint_limit: int = DEFAULT_MINT_LIMIT
    voting_authority: Principal | None = None
    reputation_authority: Principal | None = None
    tokens: dict[TokenId, Token] = field(default_factory=dict)
    owner_index: dict[Principal, list[TokenId]] = field(default_factory=dict)

    @property
    def last_token_id(self) -> TokenId:
        return self.next_token_id - 1

    def copy(self) -> RegistryState:
        """Independent copy (tokens are frozen, so a shallow map copy suffices)."""
        return RegistryState(
            next_token_id=self.next_token_id,
            mint_limit=self.mint_limit,
            voting_authority=self.voting_authority,
            reputation_authority=self.reputation_authority,
            tokens=dict(self.tokens),
            owner_index={p: list(ids) for p, ids in self.owner_index.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to the JSON-compatible snapshot format.

        Mapping keys are strings so the result survives a JSON round trip.
        """
        return {
            "version": SNAPSHOT_VERSION,
            "next_token_id": self.next_token_id,
            "mint_limit": self.mint_limit,
            "voting_authority": self.voting_authority,
            "reputation_authority": self.reputation_authority,
            "tokens": {
                str(token_id): token.to_dict()
                for token_id, token in sorted(self.tokens.items())
            },
            "owner_index": {
                principal: list(ids)
                for principal, ids in self.owner_index.items()
            },
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        owner_index_cap: int = DEFAULT_OWNER_INDEX_CAP,
    ) -> RegistryState:
        """
        Create RegistryState from snapshot format.

        If the snapshot carries no ``owner_index`` it is rebuilt from
        the tokens.
        """
        if not isinstance(data, dict):
            raise TypeError(f"snapshot must be an object, got {type(data).__name__}")

        version = str(data.get("version", SNAPSHOT_VERSION))
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version: {version}")

        tokens = {
            int(token_id): Token.from_dict(token_data)
            for token_id, token_data in _typed(data, "tokens", dict, {}).items()
        }

        owner_index_data = _typed(data, "owner_index", (dict, type(None)), None)
        if owner_index_data is None:
            owner_index = rebuild_owner_index(tokens, owner_index_cap)
        else:
            owner_index = {}
            for principal, ids in owner_index_data.items():
                if not isinstance(ids, list):
                    raise TypeError(f"owner_index[{principal!r}] must be a list")
                if not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
                    raise TypeError(f"owner_index[{principal!r}] must hold token ids")
                owner_index[principal] = list(ids)

        return cls(
            next_token_id=_typed(data, "next_token_id", int, 1),
            mint_limit=_typed(data, "mint_limit", int, DEFAULT_MINT_LIMIT),
            voting_authority=_optional_principal(data, "voting_authority"),
            reputation_authority=_optional_principal(data, "reputation_authority"),
            tokens=tokens,
            owner_index=owner_index,
        )


def append_to_index(ids: list[TokenId], token_id: TokenId, cap: int) -> list[TokenId]:
    """
    Return the owner's tracked ids after a mint.

    Keeps the first ``cap`` ids; later ids are not tracked.
    """
    return (ids + [token_id])[:cap]


def rebuild_owner_index(
    tokens: dict[TokenId, Token],
    cap: int = DEFAULT_OWNER_INDEX_CAP,
) -> dict[Principal, list[TokenId]]:
    """Reconstruct the owner index from tokens in mint (id) order."""
    index: dict[Principal, list[TokenId]] = {}
    for token_id in sorted(tokens):
        owner = tokens[token_id].owner
        index[owner] = append_to_index(index.get(owner, []), token_id, cap)
    return index
