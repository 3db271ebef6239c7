"""Candidate-to-job match analysis prompt templates."""

from agents.common.prompts import (
    ANALYTICAL_TONE,
    FAIRNESS_GUIDELINES,
    SCORING_GUIDELINES,
    JSON_OUTPUT,
)


EVALUATION_SYSTEM_PROMPT = f"""{ANALYTICAL_TONE}

You are an expert HR recruiter who assesses how well a candidate's resume
fits a specific job opening.

{FAIRNESS_GUIDELINES}

{SCORING_GUIDELINES}

{JSON_OUTPUT}
"""


# Placeholders: {JOB_TITLE} {JOB_DEPARTMENT} {JOB_EMPLOYMENT_TYPE}
# {JOB_DESCRIPTION} {JOB_REQUIREMENTS} {CANDIDATE_NAME} {CANDIDATE_EMAIL}
# {CANDIDATE_POSITION} {CANDIDATE_EXPERIENCE} {CANDIDATE_SKILLS} {RESUME_TEXT}
MATCH_ANALYSIS_PROMPT = """Analyze the following candidate's resume against the job requirements and provide a detailed assessment.

JOB DETAILS:
Title: {JOB_TITLE}
Department: {JOB_DEPARTMENT}
Employment Type: {JOB_EMPLOYMENT_TYPE}

JOB DESCRIPTION:
{JOB_DESCRIPTION}

JOB REQUIREMENTS:
{JOB_REQUIREMENTS}

CANDIDATE INFORMATION:
Name: {CANDIDATE_NAME}
Email: {CANDIDATE_EMAIL}
Current Position: {CANDIDATE_POSITION}
Years of Experience: {CANDIDATE_EXPERIENCE}
Skills: {CANDIDATE_SKILLS}

RESUME TEXT:
{RESUME_TEXT}

Respond with a JSON object with the following structure:
{
  "matchScore": <number 0-100>,
  "strengths": [<3-5 key strengths relevant to the job>],
  "weaknesses": [<2-4 areas where the candidate falls short>],
  "keySkillsMatch": [<skills from the resume that match the job requirements>],
  "recommendation": "<one of: strongly_recommended, recommended, maybe, not_recommended>",
  "summary": "<2-3 sentence summary of overall fit>",
  "experienceMatch": "<how their experience aligns with the job requirements>",
  "educationMatch": "<how their education aligns with the job requirements>"
}

Provide ONLY the JSON response, no additional text."""
