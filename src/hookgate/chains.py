"""
Chain configuration for hookgate.

DEFAULT_CHAINS is the ordered list of rule names for every action kind.
Order is policy (the first terminal outcome wins), so changes to it bump
CHAINS_VERSION and are reviewed like any other policy change.

Ordering conventions:
    - Hard denials that need no external state come first (hook_bypass,
      protected_refs) so they decide before slower rules run
    - Provenance rules (delegation) come before confirmation rules
      (protect_hooks), so a denied write is never turned into a prompt
    - Advisory rules come last; they cannot change the verdict anyway
"""

import logging

import hookgate.rules  # noqa: F401  (registers the built-in rules)
from hookgate.executor import Chain
from hookgate.rules.registry import RuleRegistry, default_registry
from hookgate.schema import ActionKind, GateConfig

logger = logging.getLogger(__name__)

CHAINS_VERSION = "1"

DEFAULT_CHAINS: dict[ActionKind, tuple[str, ...]] = {
    ActionKind.FILE_WRITE: (
        "delegation",
        "protect_hooks",
        "secret_scan",
        "panic_patterns",
    ),
    ActionKind.FILE_READ: (
        "navigation_hint",
    ),
    ActionKind.SHELL_COMMAND: (
        "hook_bypass",
        "protected_refs",
        "branch_naming",
        "delegation",
        "protect_hooks",
        "review_gate",
        "navigation_hint",
    ),
    ActionKind.AGENT_SPAWN: (
        "agent_cap",
    ),
    ActionKind.SESSION_LIFECYCLE: (
        "quality_gate",
        "memory_checkpoint",
    ),
    ActionKind.PROMPT_SUBMIT: (
        "ticket_branch",
    ),
}


def chain_names(config: GateConfig) -> dict[ActionKind, tuple[str, ...]]:
    """
    Rule names per kind after applying the config's overrides and toggles.

    A kind listed under `chains:` in the config replaces the default order
    for that kind; kinds not listed keep the default. Advisory rules
    switched off under `advisories:` are dropped.
    """
    overrides = config.chains or {}
    disabled = {
        name
        for name in ("secret_scan", "panic_patterns", "navigation_hint", "memory_checkpoint")
        if not getattr(config.advisories, name)
    }

    result: dict[ActionKind, tuple[str, ...]] = {}
    for kind in ActionKind:
        names = overrides.get(kind, DEFAULT_CHAINS[kind])
        result[kind] = tuple(name for name in names if name not in disabled)
    return result


def build_chains(config: GateConfig, registry: RuleRegistry | None = None) -> dict[ActionKind, Chain]:
    """
    Instantiate one Chain per action kind.

    Raises:
        UnknownRuleError: If a chain names an unregistered rule
        ChainConfigError: If a rule cannot be placed in its chain
    """
    if registry is None:
        registry = default_registry
    chains: dict[ActionKind, Chain] = {}
    for kind, names in chain_names(config).items():
        rules = [registry.get(name, chain=kind.value)(config) for name in names]
        chains[kind] = Chain(kind, rules)
        logger.debug("Built %r", chains[kind])
    return chains
