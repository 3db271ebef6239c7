"""
Agents package for Gemini-backed AI agents.

Each agent lives in its own subpackage with agent.py and prompts.py.
"""

from agents.registry import registry, register_agent
from agents.base import AgentResult, BaseAgent, UsageEvent

# Import all agents to register them
from agents.resume.agent import ResumeAgent, CandidateProfile
from agents.evaluation.agent import (
    EvaluationAgent,
    CandidateSummary,
    JobRequirements,
    MatchAnalysis,
)

__all__ = [
    "registry",
    "register_agent",
    "AgentResult",
    "BaseAgent",
    "UsageEvent",
    "ResumeAgent",
    "CandidateProfile",
    "EvaluationAgent",
    "CandidateSummary",
    "JobRequirements",
    "MatchAnalysis",
]
