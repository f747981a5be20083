"""
Rules for hookgate.

Importing this package registers every built-in rule in the default
registry, so chains can refer to them by name.
"""

from hookgate.rules import advisory, branch, delegation, governor, hooks, protected_refs, quality, review
from hookgate.rules.base import Rule
from hookgate.rules.registry import RuleRegistry, default_registry, register_rule

__all__ = [
    "Rule",
    "RuleRegistry",
    "advisory",
    "branch",
    "default_registry",
    "delegation",
    "governor",
    "hooks",
    "protected_refs",
    "quality",
    "register_rule",
    "review",
]
