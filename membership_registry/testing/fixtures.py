"""
Test Fixtures - Common principals and a scenario builder.

Provides:
    - Well-known test principals
    - Sample achievement hashes
    - RegistryScenario: a registry plus its height source, pre-bound
"""

from __future__ import annotations

from dataclasses import dataclass, field

from membership_registry.registry import (
    ManualHeightSource,
    MembershipRegistry,
    OperationResult,
    RegistryConfig,
    TokenId,
)

# Principals used throughout the test-suite
VOTING = "ST2VOTING"
REPUTATION = "ST4AUTH"
MEMBER = "ST3MEMBER"
OTHER_MEMBER = "ST4OTHER"

SAMPLE_HASHES = {
    "default": "abc123",
    "cid": "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi",
    "unicode": "成就-ü",
}


@dataclass
class RegistryScenario:
    """
    A registry wired to a manual height source.

    Example:
        scenario = RegistryScenario.with_authorities()
        scenario.heights.advance(5)
        token_id = scenario.mint(MEMBER).value
    """

    config: RegistryConfig = field(default_factory=RegistryConfig)
    start_height: int = 0

    registry: MembershipRegistry = field(init=False)
    heights: ManualHeightSource = field(init=False)

    def __post_init__(self) -> None:
        self.heights = ManualHeightSource(self.start_height)
        self.registry = MembershipRegistry(config=self.config, heights=self.heights)

    @classmethod
    def with_authorities(
        cls,
        voting: str = VOTING,
        reputation: str = REPUTATION,
        **kwargs,
    ) -> RegistryScenario:
        """Scenario with both authorities already bound."""
        scenario = cls(**kwargs)
        scenario.registry.bind_voting_authority(voting).unwrap()
        scenario.registry.bind_reputation_authority(reputation).unwrap()
        return scenario

    def mint(
        self,
        recipient: str = MEMBER,
        achievements_hash: str = SAMPLE_HASHES["default"],
        induction_height: int | None = None,
        caller: str | None = None,
    ) -> OperationResult[TokenId]:
        """Mint as the bound voting authority, inducted at the current height."""
        if induction_height is None:
            induction_height = self.heights.current_height()
        return self.registry.mint(
            caller or self.registry.voting_authority or VOTING,
            recipient,
            achievements_hash,
            induction_height,
        )

    def mint_many(self, count: int, recipient: str = MEMBER) -> list[TokenId]:
        """Mint ``count`` tokens to one recipient and return their ids."""
        return [self.mint(recipient).unwrap() for _ in range(count)]
