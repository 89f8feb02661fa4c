"""
Adapters module - I/O surfaces.

Adapters are thin wrappers that forward to the registry.
They hold no rules and no state of their own - only I/O.
"""

from membership_registry.adapters.cli import ScriptError, main, run_step

__all__ = [
    "main",
    "run_step",
    "ScriptError",
]
