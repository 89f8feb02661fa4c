"""
CLI Adapter - Command-line interface.

Thin wrapper over MembershipRegistry. Runs JSON operation scripts
against an in-memory registry and prints one JSON line per step.

Script format:
    [
        {"op": "bind_voting_authority", "principal": "ST2VOTING"},
        {"op": "mint", "caller": "ST2VOTING", "recipient": "ST3MEMBER",
         "achievements_hash": "abc123", "induction_height": 100, "height": 0},
        {"op": "get_token_uri", "token_id": 1}
    ]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable

from membership_registry.registry import (
    ManualHeightSource,
    MembershipRegistry,
    RegistryConfig,
    SnapshotIntegrityError,
    list_error_codes,
    list_rules,
)
from membership_registry.registry.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ScriptError(Exception):
    """Raised for an unusable operation script."""


# op name -> (argument names, handler)
_OPERATIONS: dict[str, tuple[tuple[str, ...], Callable[..., Any]]] = {
    "bind_voting_authority": (("principal",), MembershipRegistry.bind_voting_authority),
    "bind_reputation_authority": (("principal",), MembershipRegistry.bind_reputation_authority),
    "mint": (
        ("caller", "recipient", "achievements_hash", "induction_height"),
        MembershipRegistry.mint,
    ),
    "update_reputation": (("caller", "token_id", "new_score"), MembershipRegistry.update_reputation),
    "set_status": (("caller", "token_id", "active"), MembershipRegistry.set_status),
    "transfer": (("token_id", "sender", "recipient"), MembershipRegistry.transfer),
    "get_last_token_id": ((), MembershipRegistry.get_last_token_id),
    "get_token_uri": (("token_id",), MembershipRegistry.get_token_uri),
    "get_owner": (("token_id",), MembershipRegistry.get_owner),
    "get_metadata": (("token_id",), MembershipRegistry.get_metadata),
    "get_tokens_by_owner": (("principal",), MembershipRegistry.get_tokens_by_owner),
    "is_member": (("principal",), MembershipRegistry.is_member),
}


def main(args: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="membership-registry",
        description="Soulbound membership token registry",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Execute a JSON operation script")
    run_parser.add_argument("script", help="Path to the JSON script")
    run_parser.add_argument("--mint-limit", type=int, help="Override the mint limit")
    run_parser.add_argument("--snapshot-in", help="Start from a saved snapshot")
    run_parser.add_argument("--snapshot-out", help="Write the final snapshot here")

    # codes command
    subparsers.add_parser("codes", help="List error kinds and numeric codes")

    # rules command
    subparsers.add_parser("rules", help="List validation rules in evaluation order")

    # version command
    subparsers.add_parser("version", help="Show version")

    parsed = parser.parse_args(args)
    logging.basicConfig(
        level=getattr(logging, parsed.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if parsed.command is None:
        parser.print_help()
        return 0

    if parsed.command == "version":
        from membership_registry import __version__
        print(f"membership-registry {__version__}")
        return 0

    if parsed.command == "codes":
        return _cmd_codes()

    if parsed.command == "rules":
        return _cmd_rules()

    if parsed.command == "run":
        return _cmd_run(parsed)

    return 1


def _cmd_codes() -> int:
    """List error codes."""
    print("Error codes:")
    print()
    for entry in list_error_codes():
        print(f"  {entry['code']:>4}  {entry['kind']}")
    return 0


def _cmd_rules() -> int:
    """List validation rules grouped by operation."""
    current = None
    for rule in list_rules():
        if rule["operation"] != current:
            current = rule["operation"]
            print(f"{current}:")
        print(f"  {rule['order']}. {rule['id']:36} -> {rule['error']} ({rule['code']})")
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    """Handle run command."""
    try:
        steps = _load_script(Path(args.script))
        registry = _build_registry(args)
        for index, step in enumerate(steps, start=1):
            print(json.dumps(run_step(registry, step, index)))
    except (ScriptError, SnapshotIntegrityError, ConfigurationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.snapshot_out:
        Path(args.snapshot_out).write_text(json.dumps(registry.snapshot(), indent=2))
        logger.info("Snapshot written to %s", args.snapshot_out)

    return 0


def _load_script(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        raise ScriptError(f"Script not found: {path}")
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ScriptError(f"Script is not valid JSON: {e}") from e
    if not isinstance(data, list) or not all(isinstance(s, dict) for s in data):
        raise ScriptError("Script must be a JSON list of step objects")
    return data


def _load_snapshot(path: Path) -> Any:
    if not path.exists():
        raise ScriptError(f"Snapshot not found: {path}")
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ScriptError(f"Snapshot is not valid JSON: {e}") from e


def _build_registry(args: argparse.Namespace) -> MembershipRegistry:
    """
    Build the registry for a run.

    Config layers, lowest first: defaults (or the snapshot's own mint
    limit), environment, ``--mint-limit``.
    """
    overrides = {}
    if args.mint_limit is not None:
        overrides["mint_limit"] = args.mint_limit
    heights = ManualHeightSource()

    if args.snapshot_in:
        data = _load_snapshot(Path(args.snapshot_in))
        base = MembershipRegistry.from_snapshot(data).config
        config = RegistryConfig.from_env(base=base, **overrides)
        return MembershipRegistry.from_snapshot(data, config=config, heights=heights)

    config = RegistryConfig.from_env(**overrides)
    return MembershipRegistry(config=config, heights=heights)


def run_step(registry: MembershipRegistry, step: dict[str, Any], index: int = 0) -> dict[str, Any]:
    """
    Execute one script step and return its JSON-ready outcome.

    Mutating operations report ``ok``/``value`` in wire form: a failed
    call reports its numeric error code as the value.
    """
    op = step.get("op")
    if op not in _OPERATIONS:
        raise ScriptError(f"Step {index}: unknown operation {op!r}")

    arg_names, handler = _OPERATIONS[op]
    missing = [name for name in arg_names if name not in step]
    if missing:
        raise ScriptError(f"Step {index} ({op}): missing arguments {missing}")

    if "height" in step:
        heights = registry.heights
        if not isinstance(heights, ManualHeightSource):
            raise ScriptError(f"Step {index}: height can only be set on a manual height source")
        try:
            heights.set(step["height"])
        except (TypeError, ValueError) as e:
            raise ScriptError(f"Step {index}: {e}") from e

    try:
        outcome = handler(registry, *(step[name] for name in arg_names))
    except TypeError as e:
        raise ScriptError(f"Step {index} ({op}): {e}") from e

    if hasattr(outcome, "as_pair"):
        ok, value = outcome.as_pair()
    else:
        ok, value = True, outcome
    if hasattr(value, "to_dict"):
        value = value.to_dict()

    return {"step": index, "op": op, "ok": ok, "value": value}


if __name__ == "__main__":
    sys.exit(main())
