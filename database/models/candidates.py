"""
Candidate Models

A candidate belongs to one organization and may apply to many of its jobs.
Within an organization the e-mail address identifies the candidate; résumé
uploads for an e-mail already on file reuse the existing profile.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Integer,
    ForeignKey,
    DateTime,
    func,
    Text,
    JSON,
    Index,
)
from database.engine import Base, IdType, enum_column
from datetime import datetime
from enum import Enum as PyEnum

if TYPE_CHECKING:
    from database.models.organizations import Organization
    from database.models.applications import JobApplication


# ==================== Candidate Enums ===================== #
class CandidateStatus(str, PyEnum):
    """
    Pipeline status. Shared by candidates and their job applications.

    ``OVERRIDDEN`` marks a manual promotion that bypassed the AI score.
    """

    PENDING = "pending"
    SHORTLISTED = "shortlisted"
    REJECTED = "rejected"
    INTERVIEWED = "interviewed"
    HIRED = "hired"
    OVERRIDDEN = "overridden"


# ==================== Candidate Model ===================== #
class Candidate(Base):
    """Candidate profile extracted from an uploaded résumé."""

    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(
        IdType, primary_key=True, nullable=False, autoincrement=True
    )
    organization_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50))
    resume_text: Mapped[str | None] = mapped_column(Text)
    current_position: Mapped[str | None] = mapped_column(String(255))
    years_of_experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    education: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(255))
    linkedin_url: Mapped[str | None] = mapped_column(String(500))
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[CandidateStatus] = mapped_column(
        enum_column(CandidateStatus, length=20),
        nullable=False,
        default=CandidateStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="candidates"
    )
    applications: Mapped[list["JobApplication"]] = relationship(
        "JobApplication", back_populates="candidate", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    __table_args__ = (
        Index("idx_candidates_org_email", "organization_id", "email"),
        Index("idx_candidates_org_status", "organization_id", "status"),
    )
