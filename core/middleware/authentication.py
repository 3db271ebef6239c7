"""
Authentication middleware for verifying user identity.

Users sign in with the hosted auth service, which issues a Bearer JWT. This
middleware:
1. Validates the JWT from the Authorization header
2. Places the subject (user id), e-mail and claims on the ASGI scope
3. Rejects missing, invalid or expired tokens with a 401 JSON error

There is no local users table; the token subject is the user id everywhere.
"""

import logging
from typing import Callable, Optional
from datetime import datetime, timezone
import jwt
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from core.security import verify_jwt_token

logger = logging.getLogger(__name__)

# Public endpoints that don't require authentication
PUBLIC_ENDPOINTS = [
    "/",
    "/health",
    "/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
]


class AuthenticationError(Exception):
    """Base exception for authentication errors."""
    pass


class TokenExpiredError(AuthenticationError):
    """Raised when JWT token has expired."""
    pass


class TokenInvalidError(AuthenticationError):
    """Raised when JWT token is invalid."""
    pass


class TokenMissingError(AuthenticationError):
    """Raised when no Bearer token was sent."""
    pass


class AuthenticationMiddleware:
    """
    Pure ASGI authentication middleware.

    On success the scope carries ``user_id``, ``email`` and ``jwt_payload``.
    """

    def __init__(
        self,
        app: Callable,
        jwt_secret: Optional[str] = None,
        jwt_algorithm: Optional[str] = None,
        jwt_audience: Optional[str] = None,
    ):
        """
        Initialize authentication middleware.

        Args:
            app: ASGI application
            jwt_secret: Secret key for JWT verification (defaults to settings)
            jwt_algorithm: JWT signing algorithm (defaults to settings)
            jwt_audience: Expected audience claim, if any
        """
        self.app = app
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.jwt_audience = jwt_audience

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)

        # Skip authentication for public endpoints and CORS preflight
        if request.method == "OPTIONS" or self._is_public_endpoint(request.url.path):
            await self.app(scope, receive, send)
            return

        try:
            token = self._extract_token(request)
            if not token:
                raise TokenMissingError("No authentication token provided")

            try:
                payload = verify_jwt_token(
                    token, self.jwt_secret, self.jwt_algorithm, self.jwt_audience
                )
            except jwt.ExpiredSignatureError:
                raise TokenExpiredError("Token has expired")
            except jwt.InvalidTokenError as e:
                raise TokenInvalidError(f"Invalid token: {str(e)}")
        except TokenMissingError:
            await self._send_error_response(
                scope, receive, send,
                status_code=status.HTTP_401_UNAUTHORIZED,
                code="TOKEN_MISSING",
                message="Unauthorized - No authentication token provided",
            )
            return
        except TokenExpiredError:
            await self._send_error_response(
                scope, receive, send,
                status_code=status.HTTP_401_UNAUTHORIZED,
                code="TOKEN_EXPIRED",
                message="Authentication token has expired. Please sign in again.",
            )
            return
        except TokenInvalidError as e:
            logger.warning(f"Invalid token: {str(e)}")
            await self._send_error_response(
                scope, receive, send,
                status_code=status.HTTP_401_UNAUTHORIZED,
                code="TOKEN_INVALID",
                message="Invalid authentication token.",
            )
            return

        # Inject authenticated identity into request scope
        scope["user_id"] = payload.sub
        scope["email"] = payload.email
        scope["jwt_payload"] = payload

        await self.app(scope, receive, send)

    def _is_public_endpoint(self, path: str) -> bool:
        if path in PUBLIC_ENDPOINTS:
            return True

        public_prefixes = ["/health", "/ready", "/docs", "/redoc", "/openapi"]
        return any(path.startswith(prefix) for prefix in public_prefixes)

    def _extract_token(self, request: Request) -> Optional[str]:
        """
        Extract JWT token from Authorization header.

        Args:
            request: FastAPI request

        Returns:
            JWT token or None
        """
        auth_header = request.headers.get("Authorization")

        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[7:].strip() or None

        return None

    async def _send_error_response(
        self,
        scope: dict,
        receive: Callable,
        send: Callable,
        status_code: int,
        code: str,
        message: str,
    ) -> None:
        error_response = {
            "error": {
                "code": code,
                "message": message,
                "path": scope.get("path"),
                "method": scope.get("method"),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        }

        response = JSONResponse(
            status_code=status_code,
            content=error_response,
        )

        await response(scope, receive, send)


def get_current_user_email(request: Request) -> Optional[str]:
    """E-mail claim of the authenticated user, if the token carried one."""
    return request.scope.get("email")


def get_current_user_id(request: Request) -> str:
    """
    User id placed on the scope by the authentication middleware.

    Raises:
        HTTPException: 401 if the request was not authenticated
    """
    user_id = request.scope.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - No authentication token provided",
        )
    return user_id
