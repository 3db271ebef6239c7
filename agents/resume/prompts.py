"""Resume field extraction prompt templates."""

from agents.common.prompts import JSON_OUTPUT


RESUME_PARSER_SYSTEM_PROMPT = f"""You are an expert resume parser. You extract contact details,
current role, experience and skills from resumes with high accuracy.

{JSON_OUTPUT}
"""


# Placeholders: {RESUME_TEXT}
EXTRACTION_PROMPT = """Extract the following information from this resume and return it as JSON.

RESUME TEXT:
{RESUME_TEXT}

Extract and return a SINGLE JSON object (not an array) with this exact structure:
{
  "firstName": "<candidate's first name>",
  "lastName": "<candidate's last name>",
  "email": "<email address>",
  "phone": "<phone number if available>",
  "currentPosition": "<most recent job title>",
  "yearsOfExperience": <total years of professional experience as a NUMBER>,
  "skills": [<array of technical and professional skills>],
  "education": "<highest degree and institution>",
  "location": "<city and country if mentioned>",
  "linkedIn": "<LinkedIn profile URL if mentioned>"
}

Important:
- Return ONLY ONE JSON object for the candidate, NOT an array
- If a field is not found use "" for text fields, 0 for yearsOfExperience and [] for arrays
- Extract as many skills as you can find (technical skills, tools, frameworks, soft skills)
- yearsOfExperience may be a decimal (0.5 for 6 months)
- If only a full name is given, split it into firstName and lastName

Provide ONLY the JSON response, no additional text or explanation."""
