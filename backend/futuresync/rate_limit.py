"""
Request rate limiting and security middleware
"""
import logging
import math
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware

from futuresync.config import (
    APP_URL, PUBLIC_APP_URL, IS_PRODUCTION, RATE_LIMIT_CONFIGS,
    MAX_LOGIN_ATTEMPTS, LOGIN_ATTEMPT_WINDOW_MINUTES,
)

logger = logging.getLogger(__name__)

WINDOW_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400}
# Expired windows are swept at most this often
CLEANUP_INTERVAL_SECONDS = 60

SECURITY_EVENT_SEVERITY = {
    "rate_limit_exceeded": "medium",
    "invalid_origin": "high",
    "oversized_request": "medium",
    "brute_force_attempt": "high",
    "suspicious_activity": "high",
    "authentication_failure": "medium",
}

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-eval' 'unsafe-inline' https://js.stripe.com",
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
    "font-src 'self' https://fonts.gstatic.com",
    "img-src 'self' data: https: blob:",
    "connect-src 'self' https://api.openai.com https://api.stripe.com",
    "frame-src https://js.stripe.com https://hooks.stripe.com",
    "object-src 'none'",
    "base-uri 'self'",
    "form-action 'self'",
])

def parse_window(window: str) -> float:
    """'15m' -> 900.0 seconds; bare numbers are seconds"""
    match = re.match(r"^(\d+)\s*(ms|s|m|h|d)?$", window.strip())
    if not match:
        raise ValueError(f"Invalid window format: {window}")
    value, unit = match.groups()
    return int(value) * WINDOW_UNITS[unit or "s"]

def get_client_ip(request: Request) -> str:
    headers = request.headers
    if headers.get("cf-connecting-ip"):
        return headers["cf-connecting-ip"]
    if headers.get("x-real-ip"):
        return headers["x-real-ip"]
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"

def get_identifier(request: Request, kind: str = "ip") -> str:
    ip = get_client_ip(request)
    user_agent = request.headers.get("user-agent", "unknown")
    if kind == "user-agent":
        return user_agent
    if kind == "combined":
        return f"{ip}:{user_agent}"
    return ip

def log_security_event(event: str, details: Dict) -> None:
    severity = SECURITY_EVENT_SEVERITY.get(event, "low")
    logger.warning(f"SECURITY_EVENT event={event} severity={severity} details={details}")

@dataclass
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: float  # epoch seconds

class RateLimitExceeded(Exception):
    """Raised by the rate_limit dependency, rendered as 429"""

    def __init__(self, result: RateLimitResult, message: Optional[str] = None):
        super().__init__(message or "Too many requests")
        self.result = result
        self.message = message or "Too many requests"

    def headers(self, now: Optional[float] = None) -> Dict[str, str]:
        now = now or time.time()
        return {
            "X-RateLimit-Limit": str(self.result.limit),
            "X-RateLimit-Remaining": str(self.result.remaining),
            "X-RateLimit-Reset": str(int(self.result.reset * 1000)),
            "Retry-After": str(self.retry_after(now)),
        }

    def retry_after(self, now: Optional[float] = None) -> int:
        now = now or time.time()
        return max(0, math.ceil(self.result.reset - now))

class RateLimiter:
    """Fixed-window counters keyed by scope, identifier and window"""

    def __init__(self, clock=time.time):
        self.clock = clock
        self.store: Dict[str, Tuple[int, float]] = {}
        self.next_cleanup = 0.0

    def reset(self) -> None:
        self.store.clear()
        self.next_cleanup = 0.0

    def hit(self, identifier: str, requests: int, window: str) -> RateLimitResult:
        now = self.clock()
        window_seconds = parse_window(window)
        key = f"{identifier}:{window}"

        if now >= self.next_cleanup:
            self.cleanup()
            self.next_cleanup = now + CLEANUP_INTERVAL_SECONDS

        record = self.store.get(key)
        if record is None or now > record[1]:
            reset_time = now + window_seconds
            self.store[key] = (1, reset_time)
            return RateLimitResult(True, requests, requests - 1, reset_time)

        count, reset_time = record
        if count >= requests:
            return RateLimitResult(False, requests, 0, reset_time)

        self.store[key] = (count + 1, reset_time)
        return RateLimitResult(True, requests, requests - count - 1, reset_time)

    def check(self, request: Request, config: Dict, scope: str) -> RateLimitResult:
        identifier = get_identifier(request, config.get("identifier", "ip"))
        return self.hit(f"{scope}:{identifier}", config["requests"], config["window"])

    def cleanup(self) -> int:
        """Drop expired windows"""
        now = self.clock()
        expired = [key for key, (_, reset_time) in self.store.items() if now > reset_time]
        for key in expired:
            del self.store[key]
        return len(expired)

rate_limiter = RateLimiter()

def rate_limit(name: str):
    """FastAPI dependency enforcing one of RATE_LIMIT_CONFIGS"""
    config = RATE_LIMIT_CONFIGS[name]

    async def dependency(request: Request):
        result = rate_limiter.check(request, config, name)
        if not result.success:
            log_security_event("rate_limit_exceeded", {
                "ip": get_client_ip(request),
                "path": request.url.path,
                "limit": name,
            })
            raise RateLimitExceeded(result, config.get("message"))
        return result

    return dependency

def validate_request_size(request: Request, max_kb: int = 1024) -> bool:
    content_length = request.headers.get("content-length")
    if not content_length:
        return True
    try:
        return int(content_length) <= max_kb * 1024
    except ValueError:
        return False

def allowed_origins(request: Request) -> List[str]:
    host = request.headers.get("host", "")
    origins = [f"https://{host}", f"http://{host}"]
    for url in (APP_URL, PUBLIC_APP_URL):
        if url:
            origins.append(url.rstrip("/"))
    return origins

def validate_origin(request: Request) -> bool:
    """Cross-site request heuristic; requests without Origin or Referer pass"""
    origin = request.headers.get("origin")
    referer = request.headers.get("referer")
    if not origin and not referer:
        return True

    allowed = allowed_origins(request)
    if origin:
        return origin.rstrip("/") in allowed

    parsed = urlparse(referer)
    if not parsed.scheme or not parsed.netloc:
        return False
    return f"{parsed.scheme}://{parsed.netloc}" in allowed

def require_valid_origin(request: Request) -> None:
    if not validate_origin(request):
        log_security_event("invalid_origin", {
            "ip": get_client_ip(request),
            "origin": request.headers.get("origin"),
            "referer": request.headers.get("referer"),
        })
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "Invalid origin", "code": "INVALID_ORIGIN"}
        )

def require_request_size(max_kb: int):
    def dependency(request: Request) -> None:
        if not validate_request_size(request, max_kb):
            log_security_event("oversized_request", {
                "ip": get_client_ip(request),
                "content_length": request.headers.get("content-length"),
            })
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail={"error": "Request too large", "code": "REQUEST_TOO_LARGE"}
            )
    return dependency

def security_headers() -> Dict[str, str]:
    headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "X-XSS-Protection": "1; mode=block",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
        "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    }
    if IS_PRODUCTION:
        headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains; preload"
    return headers

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in security_headers().items():
            response.headers[name] = value
        return response

class LoginAttemptTracker:
    """Failed logins per email and IP within a sliding window"""

    def __init__(self, max_attempts: int = MAX_LOGIN_ATTEMPTS,
                 window_minutes: int = LOGIN_ATTEMPT_WINDOW_MINUTES, clock=time.time):
        self.max_attempts = max_attempts
        self.window_seconds = window_minutes * 60
        self.clock = clock
        self.attempts: Dict[str, List[float]] = {}

    def _recent(self, key: str) -> List[float]:
        cutoff = self.clock() - self.window_seconds
        recent = [t for t in self.attempts.get(key, []) if t > cutoff]
        if recent:
            self.attempts[key] = recent
        else:
            self.attempts.pop(key, None)
        return recent

    def is_locked(self, key: str) -> bool:
        return len(self._recent(key)) >= self.max_attempts

    def lockout(self, key: str) -> Optional[RateLimitResult]:
        """None while the key may still try, otherwise when the lock lifts"""
        recent = self._recent(key)
        if len(recent) < self.max_attempts:
            return None
        return RateLimitResult(False, self.max_attempts, 0, recent[-self.max_attempts] + self.window_seconds)

    def record_failure(self, key: str) -> int:
        recent = self._recent(key)
        recent.append(self.clock())
        self.attempts[key] = recent
        if len(recent) >= self.max_attempts:
            log_security_event("brute_force_attempt", {"key": key, "attempts": len(recent),
                                                       "at": datetime.utcnow().isoformat()})
        return len(recent)

    def clear(self, key: str) -> None:
        self.attempts.pop(key, None)

    def reset(self) -> None:
        self.attempts.clear()

login_attempts = LoginAttemptTracker()
