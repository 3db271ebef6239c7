from database.models.organizations import (
    Organization,
    OrganizationMember,
    OrganizationRole,
    MemberStatus,
)
from database.models.jobs import JobListing, JobStatus
from database.models.candidates import Candidate, CandidateStatus
from database.models.applications import (
    JobApplication,
    ApplicationStatus,
    AnalysisOutcome,
)
from database.models.api_usage import ApiUsageLog
from database.models.audit import AuditLog, AuditAction, AuditResourceType

__all__ = [
    "Organization",
    "OrganizationMember",
    "OrganizationRole",
    "MemberStatus",
    "JobListing",
    "JobStatus",
    "Candidate",
    "CandidateStatus",
    "JobApplication",
    "ApplicationStatus",
    "AnalysisOutcome",
    "ApiUsageLog",
    "AuditLog",
    "AuditAction",
    "AuditResourceType",
]
