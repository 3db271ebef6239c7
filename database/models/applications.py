"""
Application Models

One row per (job, candidate) pair, holding the AI match score, the full
analysis payload and how that analysis was produced.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    Integer,
    ForeignKey,
    DateTime,
    func,
    JSON,
    Index,
    UniqueConstraint,
)
from database.engine import Base, IdType, enum_column
from database.models.candidates import CandidateStatus
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.candidates import Candidate
    from database.models.jobs import JobListing


# Applications move through the same pipeline as candidates
ApplicationStatus = CandidateStatus


class AnalysisOutcome(str, PyEnum):
    """
    How the AI analysis attached to an application was produced.

    ``DEGRADED`` means the model call failed and a placeholder analysis
    was stored instead. ``FAILED`` never reaches the database; it marks
    results that errored before persistence.
    """

    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILED = "failed"


# ==================== Application Model ===================== #
class JobApplication(Base):
    """A candidate's application to a job, scored by the AI analysis."""

    __tablename__ = "job_applications"

    id: Mapped[int] = mapped_column(
        IdType, primary_key=True, nullable=False, autoincrement=True
    )
    job_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("job_listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    candidate_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("candidates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    match_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ai_analysis: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    analysis_outcome: Mapped[AnalysisOutcome] = mapped_column(
        enum_column(AnalysisOutcome, length=20),
        nullable=False,
        default=AnalysisOutcome.SUCCESS,
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        enum_column(ApplicationStatus, length=20),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    job: Mapped["JobListing"] = relationship("JobListing", back_populates="applications")
    candidate: Mapped["Candidate"] = relationship(
        "Candidate", back_populates="applications"
    )

    __table_args__ = (
        UniqueConstraint("job_id", "candidate_id", name="uq_application_job_candidate"),
        Index("idx_job_applications_job_status", "job_id", "status"),
    )
