"""
Unit tests for chain configuration.

Tests cover:
- Default chain order and version
- Config overrides and advisory toggles
- Registry lookups and unknown rules
"""

import pytest

from hookgate.chains import CHAINS_VERSION, DEFAULT_CHAINS, build_chains, chain_names
from hookgate.errors import ChainConfigError, UnknownRuleError
from hookgate.rules import default_registry
from hookgate.rules.registry import RuleRegistry
from hookgate.schema import ActionKind, FailurePolicy, GateConfig


class TestDefaultChains:
    """Tests for the built-in chain order."""

    def test_every_kind_has_a_chain(self) -> None:
        assert set(DEFAULT_CHAINS) == set(ActionKind)

    def test_version(self) -> None:
        assert CHAINS_VERSION == "1"

    def test_delegation_precedes_protect_hooks(self) -> None:
        """A write denied for provenance is never turned into a prompt."""
        names = DEFAULT_CHAINS[ActionKind.FILE_WRITE]
        assert names.index("delegation") < names.index("protect_hooks")

    def test_advisories_last(self) -> None:
        names = DEFAULT_CHAINS[ActionKind.FILE_WRITE]
        assert names[-2:] == ("secret_scan", "panic_patterns")

    def test_every_default_rule_registered(self) -> None:
        for names in DEFAULT_CHAINS.values():
            for name in names:
                assert name in default_registry

    def test_build_defaults(self) -> None:
        chains = build_chains(GateConfig())
        assert chains[ActionKind.AGENT_SPAWN].rule_names == ["agent_cap"]
        assert chains[ActionKind.SHELL_COMMAND].rule_names == list(DEFAULT_CHAINS[ActionKind.SHELL_COMMAND])

    def test_every_rule_declares_policy(self) -> None:
        for rule_cls in default_registry:
            assert isinstance(rule_cls.failure_policy, FailurePolicy), rule_cls.name

    def test_delegation_is_fail_secure(self) -> None:
        assert default_registry.get("delegation").failure_policy == FailurePolicy.FAIL_SECURE


class TestChainNames:
    """Tests for overrides and toggles."""

    def test_override_replaces_one_kind(self) -> None:
        config = GateConfig.model_validate({"chains": {"file_write": ["protect_hooks"]}})
        names = chain_names(config)
        assert names[ActionKind.FILE_WRITE] == ("protect_hooks",)
        assert names[ActionKind.SHELL_COMMAND] == DEFAULT_CHAINS[ActionKind.SHELL_COMMAND]

    def test_override_can_empty_a_chain(self) -> None:
        config = GateConfig.model_validate({"chains": {"agent_spawn": []}})
        assert chain_names(config)[ActionKind.AGENT_SPAWN] == ()

    def test_advisory_toggle(self) -> None:
        config = GateConfig.model_validate({"advisories": {"secret_scan": False, "navigation_hint": False}})
        names = chain_names(config)
        assert "secret_scan" not in names[ActionKind.FILE_WRITE]
        assert "panic_patterns" in names[ActionKind.FILE_WRITE]
        assert names[ActionKind.FILE_READ] == ()
        assert "navigation_hint" not in names[ActionKind.SHELL_COMMAND]


class TestBuildChains:
    """Tests for build_chains failures."""

    def test_unknown_rule(self) -> None:
        config = GateConfig.model_validate({"chains": {"file_write": ["no_such_rule"]}})
        with pytest.raises(UnknownRuleError) as exc_info:
            build_chains(config)
        assert exc_info.value.context["chain"] == "file_write"

    def test_rule_in_wrong_chain(self) -> None:
        config = GateConfig.model_validate({"chains": {"file_write": ["agent_cap"]}})
        with pytest.raises(ChainConfigError):
            build_chains(config)

    def test_empty_registry_is_used(self) -> None:
        """An explicit empty registry is not replaced by the default one."""
        with pytest.raises(UnknownRuleError):
            build_chains(GateConfig(), registry=RuleRegistry())
