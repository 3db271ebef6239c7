"""AI shortlisting request and response schemas."""

from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResumeUpload(BaseModel):
    """One uploaded resume file."""

    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName", description="Original file name")
    text: str = Field(
        default="",
        description="Plain text, or a base64 data URL for pdf/docx files",
    )
    type: str = Field(default="txt", description="File type: txt, pdf or docx")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> str:
        """Lower-case the file type, defaulting to txt."""
        if not v:
            return "txt"
        return str(v).lower()


class ShortlistRequest(BaseModel):
    """Body of ``POST /api/ai-shortlist``.

    ``job_id`` and ``organization_id`` are optional here so their absence is
    reported as a 400 with a readable message instead of a 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_id: Optional[int] = Field(None, alias="jobId", description="Job to shortlist for")
    organization_id: Optional[int] = Field(
        None, alias="organizationId", description="Organization owning the job"
    )
    resumes: list[ResumeUpload] = Field(default_factory=list, description="Uploaded resumes")
    mode: Literal["upload", "batch"] = Field(
        default="upload",
        description="upload: analyze the given resumes; batch: analyze existing candidates",
    )
    custom_extract_prompt: Optional[str] = Field(
        None, alias="customExtractPrompt", description="Template with {RESUME_TEXT}"
    )
    custom_analysis_prompt: Optional[str] = Field(
        None, alias="customAnalysisPrompt", description="Template for the match analysis"
    )


class ShortlistResponse(BaseModel):
    """Shortlisting outcome, one result entry per file or candidate."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    results: list[dict[str, Any]] = Field(default_factory=list)
    job_title: str = Field(alias="jobTitle")


class OverrideResponse(BaseModel):
    """Result of a manual override."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    application_id: int = Field(alias="applicationId")
    candidate_id: int = Field(alias="candidateId")
    status: str
    message: str
