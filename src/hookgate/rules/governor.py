"""
Resource governor.

Caps the number of concurrently active spawned agents across all teams, and
requires every spawned agent to belong to a named team so it is visible in
the team directory the cap is computed from.

Known limitation:
    The cap is soft. The count is read, compared and forgotten; nothing is
    locked or reserved. Two spawns evaluated at nearly the same moment can
    both see N-1 active agents and both be allowed, overshooting by one.
"""

import logging

from hookgate.rules.base import Rule
from hookgate.rules.registry import register_rule
from hookgate.schema import ActionKind, ActionRequest, FailurePolicy, RuleOutcome
from hookgate.snapshot import StateSnapshot

logger = logging.getLogger(__name__)


@register_rule
class AgentCapRule(Rule):
    """Visible agents only, and no more than agent_cap of them at once."""

    name = "agent_cap"
    description = "Spawned agents must join a team; total active agents are capped"
    kinds = frozenset({ActionKind.AGENT_SPAWN})
    failure_policy = FailurePolicy.FAIL_OPEN

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        payload = request.payload
        if not payload.subagent_type:
            # In-process task, not a separately running agent
            return RuleOutcome.passed()

        if not (payload.team_name and payload.team_name.strip()):
            return RuleOutcome.deny(
                f"agent_cap: agent '{payload.subagent_type}' has no team_name. "
                f"Spawn agents into a team (create one with TeamCreate) so they "
                f"are visible and counted."
            )

        counts: dict[str, int] = snapshot.require("team_member_counts")
        active = sum(counts.values())
        cap = self.config.governor.agent_cap
        logger.debug("Active agents %d / cap %d across %d team(s)", active, cap, len(counts))

        if active >= cap:
            breakdown = ", ".join(f"{team}={n}" for team, n in sorted(counts.items()) if n)
            return RuleOutcome.deny(
                f"agent_cap: {active} agents already active (cap {cap}; {breakdown}). "
                f"Wait for an agent to finish or shut one down before spawning another."
            )
        return RuleOutcome.passed()
