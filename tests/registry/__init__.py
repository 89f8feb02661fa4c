"""
Membership Registry Tests

Test Sections:
    Authority Binding      - one-time binding, null principal refusal
    Minting                - validation order, id allocation, metadata
    Token Mutation         - reputation/status authority gating
    Queries                - URIs, owners, owner index truncation
    Transfer               - soulbound policy
    Attestation & Replay   - decision log, snapshots, determinism
    Properties             - Hypothesis-driven invariants

Acceptance Rule:
    A rejected call must leave the registry snapshot byte-for-byte identical.
"""
