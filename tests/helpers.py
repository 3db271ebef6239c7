"""Test doubles and small helpers shared across test modules."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

from agents.base import AgentResult, UsageEvent
from agents.evaluation.agent import MatchAnalysis
from agents.resume.agent import CandidateProfile
from core.security import create_access_token
from database.models import AnalysisOutcome


OWNER_ID = "user-owner"
ADMIN_ID = "user-admin"
MEMBER_ID = "user-member"
VIEWER_ID = "user-viewer"
OUTSIDER_ID = "user-outsider"


def run_sync(coro):
    """Run a coroutine to completion on a private loop in a worker thread."""
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def auth_headers(user_id: str, email: Optional[str] = None) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, email=email)}"}


def resume_text(first: str, last: str, email: str, body: str = "Engineer") -> str:
    """Resume format understood by FakeResumeAgent."""
    return f"{first} {last}\n{email}\n{body}"


class FakeResumeAgent:
    """Reads name and e-mail from the first two resume lines."""

    name = "extract_candidate_info"
    model = "gemini-2.0-flash"

    def __init__(self):
        self.calls: list[Dict[str, Any]] = []

    async def process(self, input_data, recorder=None, job_id=None):
        self.calls.append(input_data)
        lines = input_data["resume_text"].splitlines()
        first, last = lines[0].split(" ", 1)
        profile = CandidateProfile(
            first_name=first, last_name=last, email=lines[1], skills=["Python"],
            years_of_experience=3,
        )
        if recorder:
            await recorder(UsageEvent(
                endpoint=self.name, model=self.model, success=True,
                input_tokens=100, output_tokens=50, job_id=job_id,
            ))
        return AgentResult(data=profile)


class FakeEvaluationAgent:
    """Scores candidates from a lookup by e-mail."""

    name = "analyze_resume_match"
    model = "gemini-2.0-flash"

    def __init__(
        self,
        scores: Optional[Dict[str, float]] = None,
        default_score: float = 80,
        degraded_emails: Optional[set] = None,
        failing_emails: Optional[set] = None,
    ):
        self.scores = scores or {}
        self.default_score = default_score
        self.degraded_emails = degraded_emails or set()
        self.failing_emails = failing_emails or set()
        self.calls: list[Dict[str, Any]] = []

    async def process(self, input_data, recorder=None, job_id=None, candidate_id=None):
        self.calls.append(input_data)
        email = input_data["candidate"].email
        if email in self.failing_emails:
            raise RuntimeError("analysis exploded")
        if recorder:
            await recorder(UsageEvent(
                endpoint=self.name, model=self.model, success=email not in self.degraded_emails,
                input_tokens=1000, output_tokens=500, job_id=job_id, candidate_id=candidate_id,
            ))
        if email in self.degraded_emails:
            return AgentResult(
                data=MatchAnalysis.placeholder(),
                outcome=AnalysisOutcome.DEGRADED,
                error="model unavailable",
            )
        score = self.scores.get(email, self.default_score)
        return AgentResult(data=MatchAnalysis.from_model_output({"matchScore": score}))
