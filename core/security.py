"""
Security utilities: access token verification and PII masking.

Access tokens are issued by the hosted auth service; this service only
verifies them. ``create_access_token`` exists for local development and tests.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Set

import jwt

from core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class JWTPayload:
    """Claims this service relies on."""

    sub: str
    email: Optional[str] = None
    exp: Optional[int] = None
    raw: dict[str, Any] = field(default_factory=dict)


def verify_jwt_token(
    token: str,
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
    audience: Optional[str] = None,
) -> JWTPayload:
    """
    Verify a Bearer token and return its claims.

    Raises:
        jwt.ExpiredSignatureError: Token expired
        jwt.InvalidTokenError: Signature, audience or subject invalid
    """
    secret = secret or settings.jwt_secret_key
    algorithm = algorithm or settings.jwt_algorithm
    audience = audience if audience is not None else settings.jwt_audience

    options = {"require": ["sub", "exp"]}
    if audience:
        claims = jwt.decode(token, secret, algorithms=[algorithm], audience=audience, options=options)
    else:
        options["verify_aud"] = False
        claims = jwt.decode(token, secret, algorithms=[algorithm], options=options)

    subject = claims.get("sub")
    if not subject or not isinstance(subject, str):
        raise jwt.InvalidTokenError("Token subject missing")

    return JWTPayload(
        sub=subject,
        email=claims.get("email"),
        exp=claims.get("exp"),
        raw=claims,
    )


def create_access_token(
    user_id: str,
    email: Optional[str] = None,
    expires_in: timedelta = timedelta(hours=1),
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
    extra_claims: Optional[dict[str, Any]] = None,
) -> str:
    """Sign a token in the shape the auth service issues."""
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    if email:
        claims["email"] = email
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(
        claims,
        secret or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


# PII fields that should be masked in logs
PII_FIELDS: Set[str] = {
    "email", "user_email", "phone", "first_name", "last_name",
    "full_name", "name", "resume_text", "linkedin_url", "location",
}


def mask_pii(data: Any, depth: int = 0) -> Any:
    """
    Recursively mask PII fields in data structures.

    Args:
        data: Data to mask (dict, list, or primitive)
        depth: Current recursion depth (max 10)

    Returns:
        Data with PII fields masked
    """
    if depth > 10:
        return "[MAX_DEPTH]"

    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if str(key).lower() in PII_FIELDS:
                if isinstance(value, str) and len(value) > 0:
                    # Partial masking: show first char and length indicator
                    masked[key] = f"{value[0]}***[{len(value)}]"
                else:
                    masked[key] = "[MASKED]"
            else:
                masked[key] = mask_pii(value, depth + 1)
        return masked
    elif isinstance(data, list):
        return [mask_pii(item, depth + 1) for item in data[:5]]
    else:
        return data
