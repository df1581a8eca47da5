"""Spec tree: contexts, spec definitions and the per-spec hook cascade."""

from specrun.tree.hooks import HookCascade, get_hook_cascade
from specrun.tree.nodes import Hook, SpecBody, SpecContext, SpecDefinition, child_path

__all__ = [
    "Hook",
    "HookCascade",
    "SpecBody",
    "SpecContext",
    "SpecDefinition",
    "child_path",
    "get_hook_cascade",
]
