from dataclasses import dataclass, field
from typing import List
from fastapi import Request, FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import re
import html

from shared.utils import settings

# --- Rate Limiting ---
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

def setup_rate_limiting(app: FastAPI):
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Security Headers Middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Content-Security-Policy"] = "default-src 'self'; img-src 'self' data:; object-src 'none'; frame-ancestors 'none';"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response

# --- Input Sanitization ---
def sanitize_input(text: str) -> str:
    """
    Sanitize input string:
    - Strip whitespace
    - HTML escape
    """
    if not isinstance(text, str):
        return text
    return html.escape(text.strip())

def clean_tags(tags: str) -> str:
    """Normalize a comma separated tag list: trimmed, no empties, no case-insensitive repeats."""
    if not tags:
        return tags
    seen = set()
    cleaned = []
    for tag in tags.split(","):
        tag = tag.strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            cleaned.append(tag)
    return ", ".join(cleaned)

# --- Passwords ---
SPECIAL_CHARACTERS = r"[!@#$%^&*(),.?\":{}|<>]"

@dataclass
class PasswordCheck:
    is_valid: bool = True
    score: int = 0
    errors: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

def validate_password_strength(password: str) -> PasswordCheck:
    """
    Validate password strength:
    - Min 8 chars
    - At least one uppercase
    - At least one lowercase
    - At least one digit
    A special character only raises the score.
    """
    result = PasswordCheck()
    if not password or not password.strip():
        result.is_valid = False
        result.errors.append("Password is required")
        return result

    required = [
        (len(password) >= 8, "Password must be at least 8 characters long"),
        (re.search(r"[A-Z]", password), "Password must contain at least one uppercase letter"),
        (re.search(r"[a-z]", password), "Password must contain at least one lowercase letter"),
        (re.search(r"\d", password), "Password must contain at least one number"),
    ]
    for passed, message in required:
        if passed:
            result.score += 20
        else:
            result.is_valid = False
            result.errors.append(message)

    if re.search(SPECIAL_CHARACTERS, password):
        result.score += 20
    else:
        result.suggestions.append("Password should contain at least one special character")
        result.score += 10

    if len(password) >= 12:
        result.score += 10

    result.score = min(result.score, 100)
    return result
