"""
Registry Test Fixtures — Shared infrastructure for registry tests.

Provides:
    - Isolated registry scenarios (with and without authorities)
    - Well-known principals
    - Mutation helpers for defensive-path tests
"""

from __future__ import annotations

import pytest

from membership_registry.registry import (
    ManualHeightSource,
    MembershipRegistry,
    RegistryConfig,
)
from membership_registry.testing import (
    MEMBER,
    OTHER_MEMBER,
    REPUTATION,
    VOTING,
    RegistryScenario,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def scenario() -> RegistryScenario:
    """A fresh registry with no authorities bound."""
    return RegistryScenario()


@pytest.fixture
def bound() -> RegistryScenario:
    """A fresh registry with both authorities bound."""
    return RegistryScenario.with_authorities()


@pytest.fixture
def registry(scenario: RegistryScenario) -> MembershipRegistry:
    return scenario.registry


@pytest.fixture
def heights(scenario: RegistryScenario) -> ManualHeightSource:
    return scenario.heights


@pytest.fixture
def minted(bound: RegistryScenario) -> RegistryScenario:
    """Both authorities bound and token 1 minted to MEMBER at height 100."""
    bound.registry.mint(VOTING, MEMBER, "abc123", 100).unwrap()
    return bound


@pytest.fixture
def small_config() -> RegistryConfig:
    return RegistryConfig(mint_limit=3)


@pytest.fixture
def voting() -> str:
    return VOTING


@pytest.fixture
def reputation() -> str:
    return REPUTATION


@pytest.fixture
def member() -> str:
    return MEMBER


@pytest.fixture
def other_member() -> str:
    return OTHER_MEMBER
