"""
AI candidate shortlisting.

Runs field extraction and match analysis for a job in one of two modes:

- ``upload``: each uploaded resume is parsed, extracted, analyzed and stored
  as a candidate plus a job application
- ``batch``: every candidate of the organization that has not applied to the
  job yet is analyzed and gets an application

Model calls run concurrently behind a token bucket; database writes happen
afterwards, one file or candidate at a time, in input order, committed per
insert.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import math
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agents.base import UsageRecorder
from agents.evaluation.agent import (
    CandidateSummary,
    EvaluationAgent,
    JobRequirements,
    MatchAnalysis,
)
from agents.resume.agent import CandidateProfile, ResumeAgent, is_placeholder_email
from api.schemas.shortlist import ResumeUpload
from api.services.audit import log_audit
from api.services.errors import ShortlistError
from api.services.usage import make_usage_recorder
from core.config import settings
from core.throttle import AsyncTokenBucket, run_bounded
from database.engine import AsyncSessionLocal
from database.models.applications import AnalysisOutcome, ApplicationStatus, JobApplication
from database.models.audit import AuditAction, AuditResourceType
from database.models.candidates import Candidate, CandidateStatus
from database.models.jobs import JobListing
from lib.document_parser import DocumentParseError, extract_resume_text

logger = logging.getLogger(__name__)

PROCESS_ERROR = "Failed to process resume"
ANALYZE_ERROR = "Failed to analyze candidate"
ALREADY_APPLIED = "Already applied to this position"

_ai_limiter: Optional[AsyncTokenBucket] = None


def get_ai_limiter() -> AsyncTokenBucket:
    """Process-wide token bucket for outbound model calls."""
    global _ai_limiter
    if _ai_limiter is None:
        _ai_limiter = AsyncTokenBucket(settings.ai_requests_per_second, settings.ai_burst)
    return _ai_limiter


def to_match_score(score: float) -> int:
    """Stored match scores are whole numbers, rounded down."""
    return int(math.floor(score))


def shortlist_status(match_score: int, threshold: Optional[int] = None) -> CandidateStatus:
    if threshold is None:
        threshold = settings.shortlist_threshold
    if match_score >= threshold:
        return CandidateStatus.SHORTLISTED
    return CandidateStatus.REJECTED


def parse_failure_message(file_type: str) -> str:
    return f"Failed to extract text from {file_type.upper()}. Please convert to TXT format."


def job_requirements(job: JobListing) -> JobRequirements:
    return JobRequirements(
        title=job.title,
        description=job.description or "",
        requirements=job.requirements or "",
        department=job.department,
        employment_type=job.employment_type,
    )


@dataclass
class UploadAnalysis:
    """Model output for one uploaded file, ready to be stored."""

    file_name: str
    resume_text: str
    profile: CandidateProfile
    analysis: MatchAnalysis
    outcome: AnalysisOutcome


@dataclass
class CandidateAnalysis:
    """Model output for one existing candidate in batch mode."""

    candidate_id: int
    candidate_name: str
    analysis: Optional[MatchAnalysis]
    outcome: AnalysisOutcome


def _combined_outcome(*outcomes: AnalysisOutcome) -> AnalysisOutcome:
    if AnalysisOutcome.FAILED in outcomes:
        return AnalysisOutcome.FAILED
    if AnalysisOutcome.DEGRADED in outcomes:
        return AnalysisOutcome.DEGRADED
    return AnalysisOutcome.SUCCESS


class ShortlistingService:
    """
    Orchestrates AI shortlisting for one request.

    Agents, limiter, concurrency and threshold are injectable; defaults come
    from settings. The request session is used for all candidate and
    application writes; usage rows are written through ``usage_session_factory``
    so concurrent model calls never share a session.
    """

    def __init__(
        self,
        session: AsyncSession,
        resume_agent: Optional[ResumeAgent] = None,
        evaluation_agent: Optional[EvaluationAgent] = None,
        limiter: Optional[AsyncTokenBucket] = None,
        max_concurrency: Optional[int] = None,
        threshold: Optional[int] = None,
        usage_session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    ):
        self.session = session
        self.resume_agent = resume_agent or ResumeAgent()
        self.evaluation_agent = evaluation_agent or EvaluationAgent()
        self.limiter = limiter or get_ai_limiter()
        self.max_concurrency = max_concurrency or settings.ai_max_concurrency
        self.threshold = settings.shortlist_threshold if threshold is None else threshold
        self.usage_session_factory = usage_session_factory

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    async def shortlist(
        self,
        user_id: Optional[str],
        job_id: Optional[int],
        organization_id: Optional[int],
        mode: str = "upload",
        resumes: Sequence[ResumeUpload] = (),
        custom_extract_prompt: Optional[str] = None,
        custom_analysis_prompt: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Run shortlisting for a job.

        Args:
            user_id: Authenticated caller, used for usage accounting
            job_id: Job to shortlist for
            organization_id: Organization that must own the job
            mode: ``upload`` or ``batch``
            resumes: Uploaded files, used in upload mode
            custom_extract_prompt: Template for field extraction
            custom_analysis_prompt: Template for match analysis

        Returns:
            Dictionary with success, message, results and jobTitle

        Raises:
            ShortlistError: 400 without job id, 404 for an unknown job or an
                organization without candidates in batch mode
        """
        if not job_id:
            raise ShortlistError(400, "Job ID is required")
        if not organization_id:
            raise ShortlistError(400, "Organization ID is required")

        job = await self.get_job(job_id, organization_id)
        job_title = job.title
        recorder = make_usage_recorder(
            user_id, organization_id, request_type=mode,
            session_factory=self.usage_session_factory,
        )

        if mode == "batch":
            results, degraded = await self.process_batch(
                job, organization_id, recorder, custom_analysis_prompt
            )
            message = f"Analyzed {len(results)} candidates"
        else:
            results, degraded = await self.process_uploads(
                job, organization_id, resumes, recorder,
                custom_extract_prompt, custom_analysis_prompt,
            )
            message = f"Analyzed {len(results)} resumes"

        if degraded:
            message += f" ({degraded} with degraded AI analysis)"

        logger.info(
            f"Shortlisting for job {job_id} ({mode}) finished: {len(results)} results, "
            f"{degraded} degraded"
        )
        return {
            "success": True,
            "message": message,
            "results": results,
            "jobTitle": job_title,
        }

    async def get_job(self, job_id: int, organization_id: int) -> JobListing:
        result = await self.session.execute(
            select(JobListing).where(
                JobListing.id == job_id,
                JobListing.organization_id == organization_id,
            )
        )
        job = result.scalar_one_or_none()
        if job is None:
            raise ShortlistError(404, "Job not found")
        return job

    # ------------------------------------------------------------------ #
    # Upload mode
    # ------------------------------------------------------------------ #

    async def process_uploads(
        self,
        job: JobListing,
        organization_id: int,
        resumes: Sequence[ResumeUpload],
        recorder: Optional[UsageRecorder] = None,
        custom_extract_prompt: Optional[str] = None,
        custom_analysis_prompt: Optional[str] = None,
    ) -> tuple[List[Dict[str, Any]], int]:
        """
        Analyze and store uploaded resumes.

        Returns:
            Per-file results in upload order and the number of degraded analyses
        """
        requirements = job_requirements(job)
        job_id = job.id

        async def analyze(resume: ResumeUpload) -> UploadAnalysis | Dict[str, Any]:
            return await self._analyze_upload(
                resume, requirements, job_id, recorder,
                custom_extract_prompt, custom_analysis_prompt,
            )

        analyzed = await run_bounded(resumes, analyze, self.max_concurrency, self.limiter)

        results: List[Dict[str, Any]] = []
        degraded = 0
        for item in analyzed:
            if isinstance(item, UploadAnalysis):
                entry = await self._store_upload(job_id, organization_id, item)
                if entry.get("analysisStatus") == AnalysisOutcome.DEGRADED.value:
                    degraded += 1
                results.append(entry)
            else:
                results.append(item)
        return results, degraded

    async def _analyze_upload(
        self,
        resume: ResumeUpload,
        requirements: JobRequirements,
        job_id: int,
        recorder: Optional[UsageRecorder],
        custom_extract_prompt: Optional[str],
        custom_analysis_prompt: Optional[str],
    ) -> UploadAnalysis | Dict[str, Any]:
        try:
            try:
                resume_text = await extract_resume_text(resume.text, resume.type)
            except DocumentParseError as e:
                logger.warning(f"Could not parse {resume.file_name}: {e}")
                return {
                    "fileName": resume.file_name,
                    "success": False,
                    "error": parse_failure_message(resume.type),
                    "analysisStatus": AnalysisOutcome.FAILED.value,
                }

            extraction = await self.resume_agent.process(
                {"resume_text": resume_text, "custom_prompt": custom_extract_prompt},
                recorder=recorder,
                job_id=job_id,
            )
            profile = extraction.data

            # The extraction call already took a token; the analysis needs its own
            await self.limiter.acquire()
            summary = CandidateSummary(
                first_name=profile.first_name,
                last_name=profile.last_name,
                email=profile.email,
                resume_text=resume_text,
                current_position=profile.current_position or None,
                years_of_experience=profile.years_of_experience,
                skills=profile.skills,
            )
            evaluation = await self.evaluation_agent.process(
                {"candidate": summary, "job": requirements, "custom_prompt": custom_analysis_prompt},
                recorder=recorder,
                job_id=job_id,
            )
        except Exception as e:
            logger.error(f"Error processing resume {resume.file_name}: {e}")
            return {
                "fileName": resume.file_name,
                "error": PROCESS_ERROR,
                "analysisStatus": AnalysisOutcome.FAILED.value,
            }

        return UploadAnalysis(
            file_name=resume.file_name,
            resume_text=resume_text,
            profile=profile,
            analysis=evaluation.data,
            outcome=_combined_outcome(extraction.outcome, evaluation.outcome),
        )

    async def _find_candidate(self, organization_id: int, email: str) -> Optional[Candidate]:
        result = await self.session.execute(
            select(Candidate)
            .where(Candidate.organization_id == organization_id, Candidate.email == email)
            .order_by(Candidate.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _has_applied(self, job_id: int, candidate_id: int) -> bool:
        result = await self.session.execute(
            select(JobApplication.id).where(
                JobApplication.job_id == job_id,
                JobApplication.candidate_id == candidate_id,
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _store_upload(
        self, job_id: int, organization_id: int, item: UploadAnalysis
    ) -> Dict[str, Any]:
        profile = item.profile
        match_score = to_match_score(item.analysis.match_score)
        status = shortlist_status(match_score, self.threshold)

        try:
            # Synthesized addresses never identify an existing candidate.
            candidate = None
            if not is_placeholder_email(profile.email):
                candidate = await self._find_candidate(organization_id, profile.email)
            if candidate is None:
                candidate = Candidate(
                    organization_id=organization_id,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                    email=profile.email,
                    phone=profile.phone or None,
                    resume_text=item.resume_text,
                    current_position=profile.current_position or None,
                    years_of_experience=profile.years_of_experience,
                    skills=profile.skills,
                    education=profile.education or None,
                    location=profile.location or None,
                    linkedin_url=profile.linkedin_url or None,
                    score=match_score,
                    status=status,
                )
                self.session.add(candidate)
                await self.session.commit()
                await self.session.refresh(candidate)

            candidate_id = candidate.id
            candidate_name = candidate.full_name

            if await self._has_applied(job_id, candidate_id):
                return {
                    "fileName": item.file_name,
                    "candidateId": candidate_id,
                    "candidateName": candidate_name,
                    "matchScore": match_score,
                    "recommendation": item.analysis.recommendation,
                    "skipped": True,
                    "reason": ALREADY_APPLIED,
                }

            now = datetime.now(timezone.utc)
            self.session.add(
                JobApplication(
                    job_id=job_id,
                    candidate_id=candidate_id,
                    match_score=match_score,
                    ai_analysis=item.analysis.to_dict(),
                    analysis_outcome=item.outcome,
                    status=status,
                    applied_at=now,
                    reviewed_at=now,
                )
            )
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error storing results for {item.file_name}: {e}")
            await self.session.rollback()
            return {
                "fileName": item.file_name,
                "error": PROCESS_ERROR,
                "analysisStatus": AnalysisOutcome.FAILED.value,
            }

        return {
            "fileName": item.file_name,
            "candidateId": candidate_id,
            "candidateName": candidate_name,
            "matchScore": match_score,
            "recommendation": item.analysis.recommendation,
            "analysisStatus": item.outcome.value,
            "success": True,
        }

    # ------------------------------------------------------------------ #
    # Batch mode
    # ------------------------------------------------------------------ #

    async def process_batch(
        self,
        job: JobListing,
        organization_id: int,
        recorder: Optional[UsageRecorder] = None,
        custom_analysis_prompt: Optional[str] = None,
    ) -> tuple[List[Dict[str, Any]], int]:
        """
        Analyze every organization candidate that has not applied to the job.

        Returns:
            Per-candidate results and the number of degraded analyses

        Raises:
            ShortlistError: 404 if the organization has no candidates
        """
        result = await self.session.execute(
            select(Candidate)
            .where(Candidate.organization_id == organization_id)
            .order_by(Candidate.id)
        )
        candidates = list(result.scalars().all())
        if not candidates:
            raise ShortlistError(404, "No candidates found")

        applied = await self.session.execute(
            select(JobApplication.candidate_id).where(JobApplication.job_id == job.id)
        )
        applied_ids = set(applied.scalars().all())
        pending = [c for c in candidates if c.id not in applied_ids]
        logger.info(
            f"Batch shortlisting job {job.id}: {len(pending)} of {len(candidates)} "
            f"candidates need analysis"
        )

        requirements = job_requirements(job)
        job_id = job.id
        work = [
            (
                candidate.id,
                candidate.full_name,
                CandidateSummary(
                    first_name=candidate.first_name,
                    last_name=candidate.last_name,
                    email=candidate.email,
                    resume_text=candidate.resume_text or "",
                    current_position=candidate.current_position,
                    years_of_experience=candidate.years_of_experience,
                    skills=list(candidate.skills or []),
                ),
            )
            for candidate in pending
        ]

        async def analyze(item: tuple[int, str, CandidateSummary]) -> CandidateAnalysis:
            candidate_id, name, summary = item
            try:
                evaluation = await self.evaluation_agent.process(
                    {"candidate": summary, "job": requirements, "custom_prompt": custom_analysis_prompt},
                    recorder=recorder,
                    job_id=job_id,
                    candidate_id=candidate_id,
                )
            except Exception as e:
                logger.error(f"Error analyzing candidate {candidate_id}: {e}")
                return CandidateAnalysis(candidate_id, name, None, AnalysisOutcome.FAILED)
            return CandidateAnalysis(candidate_id, name, evaluation.data, evaluation.outcome)

        analyzed = await run_bounded(work, analyze, self.max_concurrency, self.limiter)

        results: List[Dict[str, Any]] = []
        degraded = 0
        for item in analyzed:
            entry = await self._store_batch_result(job_id, item)
            if entry.get("analysisStatus") == AnalysisOutcome.DEGRADED.value:
                degraded += 1
            results.append(entry)

        await self.recompute_candidate_statuses(organization_id)
        return results, degraded

    async def _store_batch_result(self, job_id: int, item: CandidateAnalysis) -> Dict[str, Any]:
        failed = {
            "candidateId": item.candidate_id,
            "candidateName": item.candidate_name,
            "error": ANALYZE_ERROR,
            "analysisStatus": AnalysisOutcome.FAILED.value,
        }
        if item.analysis is None:
            return failed

        match_score = to_match_score(item.analysis.match_score)
        now = datetime.now(timezone.utc)
        try:
            self.session.add(
                JobApplication(
                    job_id=job_id,
                    candidate_id=item.candidate_id,
                    match_score=match_score,
                    ai_analysis=item.analysis.to_dict(),
                    analysis_outcome=item.outcome,
                    status=shortlist_status(match_score, self.threshold),
                    applied_at=now,
                    reviewed_at=now,
                )
            )
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error storing application for candidate {item.candidate_id}: {e}")
            await self.session.rollback()
            return failed

        return {
            "candidateId": item.candidate_id,
            "candidateName": item.candidate_name,
            "matchScore": match_score,
            "recommendation": item.analysis.recommendation,
            "analysisStatus": item.outcome.value,
        }

    # ------------------------------------------------------------------ #
    # Candidate status
    # ------------------------------------------------------------------ #

    async def recompute_candidate_statuses(self, organization_id: int) -> int:
        """
        Derive each candidate's status from their applications.

        Any overridden application wins; otherwise a candidate is shortlisted
        when their best score reaches the threshold and at least one
        application is shortlisted, and rejected in every other case.
        Candidates without applications keep their status.

        Returns:
            Number of candidates whose status changed
        """
        result = await self.session.execute(
            select(Candidate)
            .options(selectinload(Candidate.applications))
            .where(Candidate.organization_id == organization_id)
        )
        changed = 0
        for candidate in result.scalars().all():
            status = aggregate_status(candidate.applications, self.threshold)
            if status is None or status == candidate.status:
                continue
            candidate.status = status
            changed += 1

        if changed:
            await self.session.commit()
        logger.info(f"Recomputed statuses in organization {organization_id}: {changed} changed")
        return changed


def aggregate_status(
    applications: Sequence[JobApplication], threshold: Optional[int] = None
) -> Optional[CandidateStatus]:
    """Candidate status implied by their applications, None if there are none."""
    if not applications:
        return None
    if threshold is None:
        threshold = settings.shortlist_threshold
    if any(app.status == ApplicationStatus.OVERRIDDEN for app in applications):
        return CandidateStatus.OVERRIDDEN
    best = max(app.match_score or 0 for app in applications)
    if best >= threshold and any(app.status == ApplicationStatus.SHORTLISTED for app in applications):
        return CandidateStatus.SHORTLISTED
    return CandidateStatus.REJECTED


async def override_application(
    session: AsyncSession,
    user_id: str,
    organization_id: int,
    application_id: int,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Mark an application and its candidate as manually overridden.

    Raises:
        ShortlistError: 404 if the application is not in the organization
    """
    result = await session.execute(
        select(JobApplication)
        .join(Candidate, JobApplication.candidate_id == Candidate.id)
        .options(selectinload(JobApplication.candidate))
        .where(
            JobApplication.id == application_id,
            Candidate.organization_id == organization_id,
        )
    )
    application = result.scalar_one_or_none()
    if application is None:
        raise ShortlistError(404, "Application not found")

    previous = application.status
    candidate = application.candidate
    application.status = ApplicationStatus.OVERRIDDEN
    application.reviewed_at = datetime.now(timezone.utc)
    candidate.status = CandidateStatus.OVERRIDDEN
    candidate_id = candidate.id
    await session.commit()

    logger.info(f"User {user_id} overrode application {application_id} (was {previous.value})")
    await log_audit(
        session,
        user_id=user_id,
        organization_id=organization_id,
        action=AuditAction.OVERRIDE,
        resource_type=AuditResourceType.APPLICATION,
        resource_id=application_id,
        details={"previous_status": previous.value, "candidate_id": candidate_id},
        ip_address=ip_address,
        user_agent=user_agent,
    )

    return {
        "success": True,
        "applicationId": application_id,
        "candidateId": candidate_id,
        "status": ApplicationStatus.OVERRIDDEN.value,
        "message": "Application overridden",
    }
