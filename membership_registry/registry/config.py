"""
Registry configuration.

Defines the tunable constants of a registry instance. Every field has
a default matching the deployed contract, so ``RegistryConfig()`` is
always a valid configuration.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass

from .errors import ConfigurationError
from .states import DEFAULT_MINT_LIMIT, DEFAULT_OWNER_INDEX_CAP, NULL_PRINCIPAL, Principal

ENV_MINT_LIMIT = "MEMBERSHIP_REGISTRY_MINT_LIMIT"
ENV_URI_SCHEME = "MEMBERSHIP_REGISTRY_URI_SCHEME"


@dataclass
class RegistryConfig:
    """Configuration for a MembershipRegistry.

    Args:
        mint_limit: Minting is refused once next_token_id reaches this value.
        null_principal: Reserved burn address, rejected as binding or recipient.
        uri_scheme: Prefix joined with the achievements hash to form token URIs.
        owner_index_cap: Maximum ids tracked per owner in the owner index.
        attestation_enabled: Record an Attestation for every mutating call.

    Example:
        config = RegistryConfig(mint_limit=50)
        registry = MembershipRegistry(config)
    """

    mint_limit: int = DEFAULT_MINT_LIMIT
    null_principal: Principal = NULL_PRINCIPAL
    uri_scheme: str = "ipfs://"
    owner_index_cap: int = DEFAULT_OWNER_INDEX_CAP
    attestation_enabled: bool = True

    def validate(self) -> None:
        """Raise ConfigurationError if any field is out of range."""
        if isinstance(self.mint_limit, bool) or not isinstance(self.mint_limit, int):
            raise ConfigurationError("mint_limit", f"must be an int, got {self.mint_limit!r}")
        if self.mint_limit < 1:
            raise ConfigurationError("mint_limit", f"must be >= 1, got {self.mint_limit}")
        if not self.null_principal:
            raise ConfigurationError("null_principal", "must be non-empty")
        if isinstance(self.owner_index_cap, bool) or not isinstance(self.owner_index_cap, int):
            raise ConfigurationError(
                "owner_index_cap", f"must be an int, got {self.owner_index_cap!r}"
            )
        if self.owner_index_cap < 1:
            raise ConfigurationError(
                "owner_index_cap", f"must be >= 1, got {self.owner_index_cap}"
            )

    @classmethod
    def from_env(cls, base: RegistryConfig | None = None, **overrides) -> RegistryConfig:
        """
        Build a config from ``base`` (or the defaults), then environment
        variables, then explicit overrides. Later layers win.
        """
        values: dict = asdict(base) if base is not None else {}

        raw_limit = os.environ.get(ENV_MINT_LIMIT)
        if raw_limit:
            try:
                values["mint_limit"] = int(raw_limit)
            except ValueError:
                raise ConfigurationError(
                    "mint_limit", f"{ENV_MINT_LIMIT}={raw_limit!r} is not an integer"
                ) from None

        scheme = os.environ.get(ENV_URI_SCHEME)
        if scheme:
            values["uri_scheme"] = scheme

        values.update(overrides)
        config = cls(**values)
        config.validate()
        return config
