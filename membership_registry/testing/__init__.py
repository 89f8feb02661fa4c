"""
Membership Registry - Testing Utilities

Tools for testing code that drives a MembershipRegistry.

Components:
    assert_ok / assert_error  - Result assertions with readable failures
    assert_unchanged          - Rejection-is-a-no-op check
    RegistryScenario          - Pre-wired registry with both authorities bound

Usage:
    from membership_registry.testing import RegistryScenario, assert_ok

    scenario = RegistryScenario.with_authorities()
    token_id = assert_ok(scenario.mint("ST3MEMBER"))
"""

from membership_registry.testing.assertions import (
    assert_error,
    assert_ok,
    assert_unchanged,
)

from membership_registry.testing.fixtures import (
    MEMBER,
    OTHER_MEMBER,
    REPUTATION,
    SAMPLE_HASHES,
    VOTING,
    RegistryScenario,
)

__all__ = [
    # Assertions
    "assert_ok",
    "assert_error",
    "assert_unchanged",
    # Fixtures
    "RegistryScenario",
    "VOTING",
    "REPUTATION",
    "MEMBER",
    "OTHER_MEMBER",
    "SAMPLE_HASHES",
]
