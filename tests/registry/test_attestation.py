"""
Attestation, Snapshot and Replay Tests

Goal: Every decision is recorded, snapshots survive JSON, corrupt
snapshots are refused, and replay reproduces the same state.
"""

import json
import logging

import pytest

from membership_registry.registry import (
    Attestation,
    ErrorKind,
    MembershipRegistry,
    RegistryAction,
    RegistryConfig,
    SnapshotIntegrityError,
)
from membership_registry.testing import (
    MEMBER,
    OTHER_MEMBER,
    REPUTATION,
    VOTING,
    RegistryScenario,
    assert_error,
)


def _busy_scenario() -> RegistryScenario:
    """Authorities bound, a handful of accepted and rejected calls."""
    scenario = RegistryScenario.with_authorities()
    registry = scenario.registry
    scenario.heights.set(10)
    scenario.mint(MEMBER, induction_height=12)
    scenario.mint(OTHER_MEMBER)
    registry.mint(MEMBER, MEMBER, "abc123", 50)  # NotAuthorized
    registry.update_reputation(REPUTATION, 1, 42)
    registry.set_status(REPUTATION, 2, False)
    registry.transfer(1, MEMBER, OTHER_MEMBER)
    scenario.heights.advance(5)
    scenario.mint(MEMBER)
    return scenario


# =============================================================================
# Attestation Log
# =============================================================================

class TestAttestations:
    """Every mutating call is recorded"""

    def test_every_call_attested(self, registry: MembershipRegistry):
        registry.bind_voting_authority(VOTING)
        registry.bind_voting_authority(OTHER_MEMBER)
        registry.transfer(1, MEMBER, OTHER_MEMBER)

        store = registry.attestation_store
        assert store.count() == 3
        assert [a.decision for a in store.all()] == ["accepted", "rejected", "rejected"]

    def test_queries_not_attested(self, minted: RegistryScenario):
        before = minted.registry.attestation_store.count()
        minted.registry.get_owner(1)
        minted.registry.get_tokens_by_owner(MEMBER)
        minted.registry.is_member(MEMBER)

        assert minted.registry.attestation_store.count() == before

    def test_accepted_mint_record(self, bound: RegistryScenario):
        bound.heights.set(7)
        result = bound.mint(MEMBER, induction_height=9)

        att = bound.registry.attestation_store.all()[-1]
        assert att.id == result.attestation_id
        assert att.accepted
        assert att.action == "mint"
        assert att.caller == VOTING
        assert att.height == 7
        assert att.value == 1
        assert att.arguments == {
            "recipient": MEMBER,
            "achievements_hash": "abc123",
            "induction_height": 9,
        }
        assert att.error is None and att.code is None

    def test_rejected_record_carries_rule(self, bound: RegistryScenario):
        bound.registry.mint(MEMBER, MEMBER, "abc123", 0)

        att = bound.registry.attestation_store.all()[-1]
        assert not att.accepted
        assert att.error == "NotAuthorized"
        assert att.code == 100
        assert att.rule_id == "mint.voting_authority.caller"

    def test_query_filters(self):
        store = _busy_scenario().registry.attestation_store

        assert len(store.query(action=RegistryAction.MINT)) == 4
        assert len(store.query(action="mint", decision="accepted")) == 3
        assert len(store.query(caller=REPUTATION)) == 2
        assert [a.action for a in store.query(decision="rejected")] == ["mint", "transfer"]

    def test_query_since(self, bound: RegistryScenario):
        first = bound.registry.attestation_store.all()[0]
        assert len(bound.registry.attestation_store.query(since=first.timestamp)) == 2

    def test_attestation_disabled(self):
        scenario = RegistryScenario.with_authorities(
            config=RegistryConfig(attestation_enabled=False)
        )
        scenario.mint()

        assert scenario.registry.attestation_store.count() == 0
        assert scenario.registry.get_owner(1) == MEMBER

    def test_dict_round_trip(self, minted: RegistryScenario):
        att = minted.registry.attestation_store.all()[-1]
        restored = Attestation.from_dict(json.loads(json.dumps(att.to_dict())))

        assert restored == att

    def test_request_id_recorded(self, bound: RegistryScenario):
        result = bound.mint()

        att = bound.registry.attestation_store.all()[-1]
        assert att.request_id == result.request.request_id
        assert att.id == result.attestation_id
        assert att.to_dict()["request_id"] == att.request_id


# =============================================================================
# Logging
# =============================================================================

class TestDecisionLogging:
    """Accepted calls log at INFO, rejections at DEBUG"""

    def test_accepted_logged_at_info(self, bound: RegistryScenario, caplog):
        with caplog.at_level(logging.INFO, logger="membership_registry.registry.registry"):
            bound.mint()

        assert any(
            r.levelno == logging.INFO and "mint accepted" in r.getMessage()
            for r in caplog.records
        )

    def test_rejected_logged_at_debug(self, bound: RegistryScenario, caplog):
        with caplog.at_level(logging.DEBUG, logger="membership_registry.registry.registry"):
            bound.registry.transfer(1, MEMBER, OTHER_MEMBER)

        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
        assert any("TransferDisallowed" in m for m in messages)


# =============================================================================
# Snapshots
# =============================================================================

class TestSnapshot:
    """snapshot / from_snapshot"""

    def test_json_round_trip(self):
        source = _busy_scenario().registry
        data = json.loads(json.dumps(source.snapshot()))

        restored = MembershipRegistry.from_snapshot(data)

        assert restored.snapshot() == source.snapshot()
        assert restored.get_metadata(1).reputation_score == 42
        assert restored.get_metadata(2).active is False
        assert restored.voting_authority == VOTING
        assert restored.reputation_authority == REPUTATION

    def test_restored_registry_keeps_going(self, minted: RegistryScenario):
        restored = MembershipRegistry.from_snapshot(minted.registry.snapshot())

        assert restored.mint(VOTING, OTHER_MEMBER, "def456", 0).value == 2
        assert_error(restored.bind_voting_authority(OTHER_MEMBER), ErrorKind.ALREADY_BOUND)

    def test_snapshot_preserves_mint_limit(self, small_config: RegistryConfig):
        scenario = RegistryScenario.with_authorities(config=small_config)
        scenario.mint_many(2)

        restored = MembershipRegistry.from_snapshot(scenario.registry.snapshot())
        assert_error(restored.mint(VOTING, MEMBER, "abc123", 0), ErrorKind.MINT_LIMIT_REACHED)
        assert restored.config.mint_limit == 3

    def test_explicit_config_replaces_snapshot_limit(self, minted: RegistryScenario):
        data = minted.registry.snapshot()
        assert data["mint_limit"] == 1000

        restored = MembershipRegistry.from_snapshot(data, config=RegistryConfig(mint_limit=2))

        assert restored.state.mint_limit == 2
        assert_error(restored.mint(VOTING, MEMBER, "abc123", 0), ErrorKind.MINT_LIMIT_REACHED)
        assert restored.snapshot()["mint_limit"] == 2

    def test_missing_owner_index_rebuilt(self, bound: RegistryScenario):
        bound.mint_many(12)
        data = bound.registry.snapshot()
        del data["owner_index"]

        restored = MembershipRegistry.from_snapshot(data)
        assert restored.get_tokens_by_owner(MEMBER) == list(range(1, 11))

    def test_snapshot_is_detached(self, minted: RegistryScenario):
        data = minted.registry.snapshot()
        data["owner_index"][MEMBER].append(99)
        data["next_token_id"] = 50

        assert minted.registry.get_last_token_id() == 1
        assert minted.registry.get_tokens_by_owner(MEMBER) == [1]

    @pytest.mark.parametrize(
        "corrupt",
        [
            pytest.param(lambda d: d.update(next_token_id=5), id="gap-in-ids"),
            pytest.param(lambda d: d["tokens"].pop("1"), id="missing-token"),
            pytest.param(lambda d: d["owner_index"].update({MEMBER: [2]}), id="wrong-index"),
            pytest.param(
                lambda d: d.update(voting_authority="SP000000000000000000002Q6VF78"),
                id="null-authority",
            ),
            pytest.param(lambda d: d["tokens"]["1"].update(achievements_hash=""), id="empty-hash"),
        ],
    )
    def test_invariant_violation_refused(self, minted: RegistryScenario, corrupt, caplog):
        data = minted.registry.snapshot()
        corrupt(data)

        with caplog.at_level(logging.WARNING):
            with pytest.raises(SnapshotIntegrityError) as exc_info:
                MembershipRegistry.from_snapshot(data)

        assert exc_info.value.violations
        assert any(r.levelno == logging.WARNING for r in caplog.records)

    @pytest.mark.parametrize(
        "data",
        [
            pytest.param({"version": "99"}, id="unknown-version"),
            pytest.param({"tokens": {"1": {"owner": MEMBER}}, "next_token_id": 2}, id="missing-field"),
            pytest.param({"tokens": {"one": {}}}, id="non-numeric-id"),
            pytest.param([], id="list"),
            pytest.param("x", id="string"),
            pytest.param(None, id="null"),
            pytest.param({"tokens": []}, id="tokens-list"),
            pytest.param({"tokens": {"1": "abc123"}}, id="token-not-object"),
            pytest.param({"owner_index": []}, id="owner-index-list"),
            pytest.param({"owner_index": {MEMBER: "1"}}, id="owner-ids-string"),
            pytest.param({"next_token_id": "2"}, id="next-id-string"),
            pytest.param({"voting_authority": 7}, id="authority-int"),
        ],
    )
    def test_malformed_snapshot_refused(self, data):
        with pytest.raises(SnapshotIntegrityError) as exc_info:
            MembershipRegistry.from_snapshot(data)

        assert exc_info.value.violations[0].invariant_id == "snapshot.format"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("active", "false"),
            ("active", 0),
            ("induction_height", "100"),
            ("induction_height", True),
            ("reputation_score", 1.5),
            ("owner", None),
        ],
    )
    def test_token_values_not_coerced(self, minted: RegistryScenario, field, value):
        data = minted.registry.snapshot()
        data["tokens"]["1"][field] = value

        with pytest.raises(SnapshotIntegrityError) as exc_info:
            MembershipRegistry.from_snapshot(data)

        assert field in str(exc_info.value)

    def test_violations_listed_in_details(self, minted: RegistryScenario):
        data = minted.registry.snapshot()
        data["next_token_id"] = 3

        with pytest.raises(SnapshotIntegrityError) as exc_info:
            MembershipRegistry.from_snapshot(data)

        ids = [v["invariant_id"] for v in exc_info.value.details["violations"]]
        assert "state.ids.contiguous" in ids

    def test_verify_clean_state(self):
        assert _busy_scenario().registry.verify() == []


# =============================================================================
# Replay
# =============================================================================

class TestReplay:
    """replay"""

    def test_replay_reproduces_snapshot(self):
        source = _busy_scenario().registry
        replayed = source.replay(source.attestation_store.all())

        assert replayed.snapshot() == source.snapshot()

    def test_replay_from_serialized_log(self):
        source = _busy_scenario().registry
        log = [json.loads(json.dumps(a.to_dict())) for a in source.attestation_store.all()]

        assert source.replay(log).snapshot() == source.snapshot()

    def test_replay_skips_rejections(self):
        source = _busy_scenario().registry
        replayed = source.replay(source.attestation_store.all())

        assert replayed.attestation_store.query(decision="rejected") == []
        assert replayed.attestation_store.count() == len(
            source.attestation_store.query(decision="accepted")
        )

    def test_replay_honours_recorded_heights(self, bound: RegistryScenario):
        """A mint accepted at height 20 with induction 20 replays cleanly."""
        bound.heights.set(20)
        bound.mint(induction_height=20)

        replayed = bound.registry.replay(bound.registry.attestation_store.all())
        assert replayed.heights.current_height() == 20
        assert replayed.get_metadata(1).induction_height == 20
