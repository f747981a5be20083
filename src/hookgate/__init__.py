"""
hookgate - Admission control for coding-agent tool calls.

hookgate sits between an agent host and the actions its agents propose.
Every proposed action (file write, shell command, agent spawn, lifecycle
event, prompt) is normalized, run through an ordered chain of rules and
answered with a verdict:
- allow, optionally with non-blocking advisories
- deny, with a reason the agent can act on
- ask, deferring to a human

Example usage:
    $ echo '{"tool_name": "Bash", "tool_input": {"command": "git push origin main"}}' | hookgate check
    $ hookgate chains
    $ hookgate teams
"""

__version__ = "0.1.0"
__author__ = "hookgate Contributors"

__all__ = [
    "__version__",
    "__author__",
]
