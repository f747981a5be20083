"""
Rule registry for hookgate.

Maps stable rule names to rule classes so chains can be declared as plain
lists of names (in code or in YAML).

Usage:
    from hookgate.rules.registry import default_registry

    rule_cls = default_registry.get("delegation")
    rule = rule_cls(config)
"""

from typing import Iterator

from hookgate.errors import UnknownRuleError
from hookgate.rules.base import Rule


class RuleRegistry:
    """
    Registry for looking up rule classes by name.

    Attributes:
        _rules: Internal mapping of rule names to rule classes
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._rules: dict[str, type[Rule]] = {}

    def register(self, rule_cls: type[Rule]) -> type[Rule]:
        """
        Register a rule class.

        Returns the class so this can be used as a decorator.

        Raises:
            ValueError: If the class has an empty name or the name is taken
                by a different class
        """
        name = rule_cls.name
        if not name:
            msg = f"Rule {rule_cls.__name__} must have a non-empty name"
            raise ValueError(msg)

        existing = self._rules.get(name)
        if existing is not None and existing is not rule_cls:
            msg = f"Rule name {name!r} already registered by {existing.__name__}"
            raise ValueError(msg)

        self._rules[name] = rule_cls
        return rule_cls

    def get(self, name: str, chain: str = "") -> type[Rule]:
        """
        Look up a rule class by name.

        Raises:
            UnknownRuleError: If no rule with that name is registered
        """
        rule_cls = self._rules.get(name)
        if rule_cls is None:
            raise UnknownRuleError(chain=chain, rule=name)
        return rule_cls

    def list_rules(self) -> list[str]:
        """List all registered rule names in sorted order."""
        return sorted(self._rules.keys())

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[type[Rule]]:
        return iter(self._rules.values())

    def __contains__(self, name: str) -> bool:
        return name in self._rules

    def __repr__(self) -> str:
        rules = ", ".join(self.list_rules())
        return f"<RuleRegistry: [{rules}]>"


# Global default registry; rule modules register themselves on import
default_registry = RuleRegistry()


def register_rule(rule_cls: type[Rule]) -> type[Rule]:
    """Class decorator registering a rule in the default registry."""
    return default_registry.register(rule_cls)
