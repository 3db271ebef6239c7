"""
Redis-based rate limiting middleware.

Sliding-window limits per user (or per client IP for anonymous requests),
with a stricter rule on the AI shortlisting endpoint. The limiter fails
open: if Redis is unreachable requests are allowed and the failure is
logged.
"""

import logging
import time
import uuid
from typing import Callable, Optional, List, Dict, Any
from enum import Enum
from dataclasses import dataclass
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RateLimitStrategy(str, Enum):
    """What a rate limit key is derived from."""
    IP_ADDRESS = "ip"
    USER_ID = "user"


class RateLimitWindow(str, Enum):
    """Time window types for rate limiting."""
    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"


WINDOW_SECONDS = {
    RateLimitWindow.SECOND: 1,
    RateLimitWindow.MINUTE: 60,
    RateLimitWindow.HOUR: 3600,
}


@dataclass
class RateLimitRule:
    """Rate limit rule configuration."""
    strategy: RateLimitStrategy
    window: RateLimitWindow
    max_requests: int
    paths: Optional[List[str]] = None  # Path prefixes the rule applies to
    methods: Optional[List[str]] = None


def default_rules(per_minute: int, ai_per_minute: int, api_prefix: str = "/api") -> List[RateLimitRule]:
    """General per-user limit plus a stricter limit on AI shortlisting."""
    return [
        RateLimitRule(
            strategy=RateLimitStrategy.USER_ID,
            window=RateLimitWindow.MINUTE,
            max_requests=ai_per_minute,
            paths=[f"{api_prefix}/ai-shortlist"],
            methods=["POST"],
        ),
        RateLimitRule(
            strategy=RateLimitStrategy.USER_ID,
            window=RateLimitWindow.MINUTE,
            max_requests=per_minute,
        ),
    ]


class SlidingWindowRateLimiter:
    """
    Sliding window rate limiter on Redis sorted sets.

    Each request is a member scored by its timestamp; members older than the
    window are trimmed before counting.
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def is_allowed(
        self,
        key: str,
        max_requests: int,
        window_seconds: int,
    ) -> tuple[bool, Dict[str, Any]]:
        """
        Check if request is allowed under rate limit.

        Args:
            key: Unique identifier for the rate limit
            max_requests: Maximum requests allowed in window
            window_seconds: Time window in seconds

        Returns:
            Tuple of (is_allowed, metadata) where metadata holds limit,
            remaining, reset and retry_after
        """
        now = time.time()
        window_start = now - window_seconds

        try:
            pipe = self.redis.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            member = f"{now}:{uuid.uuid4().hex[:8]}"
            pipe.zadd(key, {member: now})
            pipe.expire(key, window_seconds + 60)
            results = await pipe.execute()

            # Count before this request was added
            current_count = results[1]
            allowed = current_count + 1 <= max_requests
            retry_after = 0

            if not allowed:
                oldest = await self.redis.zrange(key, 0, 0, withscores=True)
                if oldest:
                    retry_after = int(oldest[0][1] + window_seconds - now) + 1
                else:
                    retry_after = window_seconds
                await self.redis.zrem(key, member)

            return allowed, {
                'limit': max_requests,
                'remaining': max(0, max_requests - current_count - 1),
                'reset': int(now + window_seconds),
                'retry_after': max(0, retry_after),
            }

        except RedisError as e:
            logger.error(f"Redis error in rate limiter, allowing request: {e}")
            return True, {
                'limit': max_requests,
                'remaining': max_requests,
                'reset': int(now + window_seconds),
                'retry_after': 0,
            }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies every matching rule; the most restrictive result wins.
    Adds ``X-RateLimit-*`` headers and answers 429 with ``Retry-After``.
    """

    def __init__(
        self,
        app: ASGIApp,
        redis_url: Optional[str] = None,
        rules: Optional[List[RateLimitRule]] = None,
        key_prefix: str = "ratelimit",
        redis_client: Optional[Redis] = None,
    ):
        """
        Args:
            app: The ASGI application
            redis_url: Redis connection URL, used when no client is given
            rules: Rate limit rules to apply
            key_prefix: Prefix for Redis keys
            redis_client: Pre-built async Redis client
        """
        super().__init__(app)
        self.redis_url = redis_url
        self.redis_client = redis_client
        self.limiter: Optional[SlidingWindowRateLimiter] = (
            SlidingWindowRateLimiter(redis_client) if redis_client is not None else None
        )
        self.rules = rules or default_rules(per_minute=100, ai_per_minute=10)
        self.key_prefix = key_prefix

    def _ensure_limiter(self) -> Optional[SlidingWindowRateLimiter]:
        if self.limiter is None and self.redis_url:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
            )
            self.limiter = SlidingWindowRateLimiter(self.redis_client)
            logger.info("Rate limiter initialized")
        return self.limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        limiter = self._ensure_limiter()
        if limiter is None or request.url.path in ['/health', '/ready']:
            return await call_next(request)

        result = await self._check_rate_limits(limiter, request)

        if not result['allowed']:
            logger.warning(
                f"Rate limit exceeded on {request.method} {request.url.path}"
            )
            response = JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    'error': {
                        'code': 'RATE_LIMIT_EXCEEDED',
                        'message': 'Too many requests. Please try again later.',
                        'retry_after': result['retry_after'],
                    }
                },
            )
            self._add_rate_limit_headers(response, result)
            return response

        response = await call_next(request)
        self._add_rate_limit_headers(response, result)
        return response

    async def _check_rate_limits(
        self, limiter: SlidingWindowRateLimiter, request: Request
    ) -> Dict[str, Any]:
        results = {
            'allowed': True,
            'limit': 0,
            'remaining': 0,
            'reset': 0,
            'retry_after': 0,
        }

        for rule in self._get_applicable_rules(request):
            allowed, metadata = await limiter.is_allowed(
                key=self._generate_key(request, rule),
                max_requests=rule.max_requests,
                window_seconds=WINDOW_SECONDS[rule.window],
            )

            if not allowed:
                results['allowed'] = False
                results['retry_after'] = max(results['retry_after'], metadata['retry_after'])

            if results['limit'] == 0 or metadata['remaining'] < results['remaining']:
                results['limit'] = metadata['limit']
                results['remaining'] = metadata['remaining']
                results['reset'] = metadata['reset']

        return results

    def _get_applicable_rules(self, request: Request) -> List[RateLimitRule]:
        applicable = []
        for rule in self.rules:
            if rule.paths and not any(request.url.path.startswith(p) for p in rule.paths):
                continue
            if rule.methods and request.method not in rule.methods:
                continue
            applicable.append(rule)
        return applicable

    def _generate_key(self, request: Request, rule: RateLimitRule) -> str:
        parts = [self.key_prefix, rule.strategy.value, rule.window.value]
        if rule.paths:
            parts.append(rule.paths[0])

        user_id = request.scope.get("user_id")
        if rule.strategy == RateLimitStrategy.USER_ID and user_id:
            parts.append(str(user_id))
        else:
            # Anonymous requests fall back to the client IP
            parts.append(f"ip:{self._get_client_ip(request)}")

        return ":".join(parts)

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get('x-forwarded-for')
        if forwarded_for:
            return forwarded_for.split(',')[0].strip()
        return request.client.host if request.client else 'unknown'

    def _add_rate_limit_headers(self, response: Response, result: Dict[str, Any]):
        response.headers['X-RateLimit-Limit'] = str(result['limit'])
        response.headers['X-RateLimit-Remaining'] = str(result['remaining'])
        response.headers['X-RateLimit-Reset'] = str(result['reset'])
        if not result['allowed']:
            response.headers['Retry-After'] = str(result['retry_after'])

    async def close(self):
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            logger.info("Rate limiter closed")
