"""Agent registry: one shared instance per usage-log endpoint name."""

from typing import Dict, Type
from agents.base import BaseAgent


class AgentRegistry:
    """Maps endpoint names to agent classes and hands out shared instances.

    Agents are stateless apart from their model client, so a single instance
    per endpoint is reused across requests and built on first use.
    """

    def __init__(self):
        self._classes: Dict[str, Type[BaseAgent]] = {}
        self._shared: Dict[str, BaseAgent] = {}

    def register(self, endpoint: str, agent_class: Type[BaseAgent]):
        if endpoint in self._classes and self._classes[endpoint] is not agent_class:
            raise ValueError(f"Endpoint '{endpoint}' is already registered")
        self._classes[endpoint] = agent_class

    def get(self, endpoint: str) -> BaseAgent:
        """Shared agent for an endpoint.

        Raises:
            ValueError: If no agent is registered under ``endpoint``
        """
        agent = self._shared.get(endpoint)
        if agent is None:
            try:
                agent_class = self._classes[endpoint]
            except KeyError:
                raise ValueError(f"Agent '{endpoint}' not registered")
            agent = self._shared[endpoint] = agent_class()
        return agent

    def list_agents(self) -> list[str]:
        return sorted(self._classes)


registry = AgentRegistry()


def register_agent(endpoint: str):
    """Class decorator adding an agent to the shared registry."""
    def decorator(cls: Type[BaseAgent]):
        registry.register(endpoint, cls)
        return cls
    return decorator
