"""
Job listing model.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, ForeignKey, DateTime, func, Index
from database.engine import Base, IdType, enum_column
from datetime import datetime
from enum import Enum as PyEnum

if TYPE_CHECKING:
    from database.models.organizations import Organization
    from database.models.applications import JobApplication


class JobStatus(str, PyEnum):
    """Publication status of a job listing."""

    ACTIVE = "active"
    DRAFT = "draft"
    INACTIVE = "inactive"


class JobListing(Base):
    """A position posted by one organization."""

    __tablename__ = "job_listings"

    id: Mapped[int] = mapped_column(
        IdType, primary_key=True, nullable=False, autoincrement=True
    )
    organization_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    requirements: Mapped[str | None] = mapped_column(Text)
    department: Mapped[str | None] = mapped_column(String(255))
    location: Mapped[str | None] = mapped_column(String(255))
    employment_type: Mapped[str | None] = mapped_column(String(50))
    status: Mapped[JobStatus] = mapped_column(
        enum_column(JobStatus, length=20),
        nullable=False,
        default=JobStatus.DRAFT,
    )
    created_by: Mapped[str | None] = mapped_column(String(64))
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
        "Organization", back_populates="jobs"
    )
    applications: Mapped[list["JobApplication"]] = relationship(
        "JobApplication", back_populates="job", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_job_listings_org_status", "organization_id", "status"),
    )
