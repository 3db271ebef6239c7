"""Evaluation agent: scores how well a candidate matches a job."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from agents.base import AgentResult, BaseAgent, ModelResponse, UsageRecorder
from agents.registry import register_agent
from agents.common.prompts import NOT_SPECIFIED, fill_template
from agents.common.utils import (
    clamp_score,
    optional_text,
    parse_json_response,
    sanitize_string_list,
)
from agents.evaluation.prompts import EVALUATION_SYSTEM_PROMPT, MATCH_ANALYSIS_PROMPT
from database.models.applications import AnalysisOutcome

logger = logging.getLogger(__name__)

MAX_RESUME_CHARS = 8_000
RECOMMENDED_SCORE = 70


class Recommendation(str, Enum):
    STRONGLY_RECOMMENDED = "strongly_recommended"
    RECOMMENDED = "recommended"
    MAYBE = "maybe"
    NOT_RECOMMENDED = "not_recommended"


@dataclass
class JobRequirements:
    title: str
    description: str = ""
    requirements: str = ""
    department: Optional[str] = None
    employment_type: Optional[str] = None


@dataclass
class CandidateSummary:
    """What the analysis prompt knows about a candidate."""

    first_name: str
    last_name: str
    email: str
    resume_text: str = ""
    current_position: Optional[str] = None
    years_of_experience: Optional[int] = None
    skills: List[str] = field(default_factory=list)


@dataclass
class MatchAnalysis:
    """Normalized analysis, serialized with camelCase keys for storage and the API."""

    match_score: float
    strengths: List[str]
    weaknesses: List[str]
    key_skills_match: List[str]
    recommendation: str
    summary: str
    experience_match: str
    education_match: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matchScore": self.match_score,
            "strengths": self.strengths,
            "weaknesses": self.weaknesses,
            "keySkillsMatch": self.key_skills_match,
            "recommendation": self.recommendation,
            "summary": self.summary,
            "experienceMatch": self.experience_match,
            "educationMatch": self.education_match,
        }

    @classmethod
    def from_model_output(cls, data: Dict[str, Any]) -> "MatchAnalysis":
        score = clamp_score(data.get("matchScore"))
        recommendation = optional_text(data.get("recommendation"))
        if recommendation not in {r.value for r in Recommendation}:
            recommendation = (
                Recommendation.RECOMMENDED.value
                if score >= RECOMMENDED_SCORE
                else Recommendation.MAYBE.value
            )
        summary = optional_text(data.get("summary"))
        if not summary:
            summary = f"Candidate scored {score:g}% match for this position."

        return cls(
            match_score=score,
            strengths=sanitize_string_list(data.get("strengths")),
            weaknesses=sanitize_string_list(data.get("weaknesses")),
            key_skills_match=sanitize_string_list(data.get("keySkillsMatch")),
            recommendation=recommendation,
            summary=summary,
            experience_match=optional_text(data.get("experienceMatch")),
            education_match=optional_text(data.get("educationMatch")),
        )

    @classmethod
    def placeholder(cls) -> "MatchAnalysis":
        """Neutral analysis stored when the model could not be used."""
        return cls(
            match_score=50,
            strengths=["Unable to analyze - please review manually"],
            weaknesses=["Analysis failed"],
            key_skills_match=[],
            recommendation=Recommendation.MAYBE.value,
            summary="AI analysis failed. Please review this candidate manually.",
            experience_match="Unable to assess",
            education_match="Unable to assess",
        )


@register_agent("analyze_resume_match")
class EvaluationAgent(BaseAgent):
    """Agent for scoring a candidate against one job's requirements."""

    def __init__(self, **kwargs: Any):
        super().__init__(
            name="analyze_resume_match",
            instructions=EVALUATION_SYSTEM_PROMPT,
            **kwargs,
        )

    def build_prompt(
        self,
        candidate: CandidateSummary,
        job: JobRequirements,
        custom_prompt: Optional[str] = None,
    ) -> str:
        experience = candidate.years_of_experience
        values = {
            "JOB_TITLE": job.title,
            "JOB_DEPARTMENT": job.department or NOT_SPECIFIED,
            "JOB_EMPLOYMENT_TYPE": job.employment_type or NOT_SPECIFIED,
            "JOB_DESCRIPTION": job.description or "",
            "JOB_REQUIREMENTS": job.requirements or "",
            "CANDIDATE_NAME": f"{candidate.first_name} {candidate.last_name}",
            "CANDIDATE_EMAIL": candidate.email,
            "CANDIDATE_POSITION": candidate.current_position or NOT_SPECIFIED,
            "CANDIDATE_EXPERIENCE": str(experience) if experience is not None else NOT_SPECIFIED,
            "CANDIDATE_SKILLS": ", ".join(candidate.skills) or NOT_SPECIFIED,
            "RESUME_TEXT": (candidate.resume_text or "")[:MAX_RESUME_CHARS],
        }
        return fill_template(custom_prompt or MATCH_ANALYSIS_PROMPT, values)

    async def process(
        self,
        input_data: Dict[str, Any],
        recorder: Optional[UsageRecorder] = None,
        job_id: Optional[int] = None,
        candidate_id: Optional[int] = None,
    ) -> AgentResult[MatchAnalysis]:
        """Analyze one candidate against one job.

        Args:
            input_data: Dictionary with 'candidate' (CandidateSummary), 'job'
                       (JobRequirements) and optional 'custom_prompt'
            recorder: Callback that stores the API usage of this call
            job_id: Job the usage is attributed to
            candidate_id: Candidate the usage is attributed to

        Returns:
            AgentResult with the analysis; on any failure the placeholder
            analysis with outcome ``DEGRADED``
        """
        started = time.perf_counter()
        response: Optional[ModelResponse] = None
        prompt = self.build_prompt(
            input_data["candidate"],
            input_data["job"],
            input_data.get("custom_prompt"),
        )

        try:
            response = await self.generate(prompt)
            analysis = MatchAnalysis.from_model_output(parse_json_response(response.text))
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(f"Match analysis failed: {error}")
            await self._record_usage(
                recorder, started, response, error=error,
                job_id=job_id, candidate_id=candidate_id,
            )
            return AgentResult(
                data=MatchAnalysis.placeholder(),
                outcome=AnalysisOutcome.DEGRADED,
                error=error,
                usage=response,
            )

        await self._record_usage(
            recorder, started, response, job_id=job_id, candidate_id=candidate_id
        )
        return AgentResult(data=analysis, usage=response)
