"""Resume agent: extracts candidate fields from raw resume text."""

import logging
import time
import uuid
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from agents.base import AgentResult, BaseAgent, ModelResponse, UsageRecorder
from agents.registry import register_agent
from agents.common.prompts import fill_template
from agents.common.utils import (
    optional_text,
    parse_json_response,
    sanitize_integer,
    sanitize_string_list,
)
from agents.resume.prompts import EXTRACTION_PROMPT, RESUME_PARSER_SYSTEM_PROMPT
from database.models.applications import AnalysisOutcome

logger = logging.getLogger(__name__)

MAX_RESUME_CHARS = 10_000
DEFAULT_FIRST_NAME = "Unknown"
DEFAULT_LAST_NAME = "Candidate"


PLACEHOLDER_EMAIL_DOMAIN = "placeholder.com"


def placeholder_email() -> str:
    """Unique stand-in for resumes without an e-mail address.

    Millisecond timestamp followed by six random digits, so resumes
    extracted in the same millisecond still get distinct addresses.
    """
    suffix = uuid.uuid4().int % 1_000_000
    return f"candidate_{int(time.time() * 1000)}{suffix:06d}@{PLACEHOLDER_EMAIL_DOMAIN}"


def is_placeholder_email(email: str) -> bool:
    return email.startswith("candidate_") and email.endswith(f"@{PLACEHOLDER_EMAIL_DOMAIN}")


@dataclass
class CandidateProfile:
    """Fields extracted from one resume."""

    first_name: str = DEFAULT_FIRST_NAME
    last_name: str = DEFAULT_LAST_NAME
    email: str = field(default_factory=placeholder_email)
    phone: str = ""
    current_position: str = ""
    years_of_experience: int = 0
    skills: List[str] = field(default_factory=list)
    education: str = ""
    location: str = ""
    linkedin_url: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_model_output(cls, data: Dict[str, Any]) -> "CandidateProfile":
        """Build a profile from model JSON, filling defaults for missing fields."""
        email = optional_text(data.get("email"))
        return cls(
            first_name=optional_text(data.get("firstName")) or DEFAULT_FIRST_NAME,
            last_name=optional_text(data.get("lastName")) or DEFAULT_LAST_NAME,
            email=email or placeholder_email(),
            phone=optional_text(data.get("phone")),
            current_position=optional_text(data.get("currentPosition")),
            years_of_experience=max(0, sanitize_integer(data.get("yearsOfExperience"))),
            skills=sanitize_string_list(data.get("skills")),
            education=optional_text(data.get("education")),
            location=optional_text(data.get("location")),
            linkedin_url=optional_text(data.get("linkedIn")),
        )


@register_agent("extract_candidate_info")
class ResumeAgent(BaseAgent):
    """Agent for turning resume text into a structured candidate profile."""

    def __init__(self, **kwargs: Any):
        super().__init__(
            name="extract_candidate_info",
            instructions=RESUME_PARSER_SYSTEM_PROMPT,
            **kwargs,
        )

    def build_prompt(self, resume_text: str, custom_prompt: Optional[str] = None) -> str:
        template = custom_prompt or EXTRACTION_PROMPT
        return fill_template(template, {"RESUME_TEXT": resume_text[:MAX_RESUME_CHARS]})

    async def process(
        self,
        input_data: Dict[str, Any],
        recorder: Optional[UsageRecorder] = None,
        job_id: Optional[int] = None,
    ) -> AgentResult[CandidateProfile]:
        """Extract candidate fields from a resume.

        Args:
            input_data: Dictionary with 'resume_text' and optional 'custom_prompt'
            recorder: Callback that stores the API usage of this call

        Returns:
            AgentResult with the profile; on any failure a default profile
            with outcome ``DEGRADED``
        """
        started = time.perf_counter()
        response: Optional[ModelResponse] = None
        prompt = self.build_prompt(
            input_data.get("resume_text") or "",
            input_data.get("custom_prompt"),
        )

        try:
            response = await self.generate(prompt)
            profile = CandidateProfile.from_model_output(parse_json_response(response.text))
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(f"Candidate extraction failed: {error}")
            await self._record_usage(recorder, started, response, error=error, job_id=job_id)
            return AgentResult(
                data=CandidateProfile(),
                outcome=AnalysisOutcome.DEGRADED,
                error=error,
                usage=response,
            )

        await self._record_usage(recorder, started, response, job_id=job_id)
        return AgentResult(data=profile, usage=response)
