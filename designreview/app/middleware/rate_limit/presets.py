"""Named rate limit policies built from settings."""

from typing import Dict

from designreview.app.core.config import Settings
from designreview.app.middleware.rate_limit.models import RateLimitPolicy

MINUTE_MS = 60 * 1000
FIFTEEN_MINUTES_MS = 15 * MINUTE_MS
DAY_MS = 24 * 60 * MINUTE_MS

AI_ANALYSIS = "ai_analysis"
AI_DAILY = "ai_daily"
API_GENERAL = "api_general"
AUTH = "auth"


def build_rate_limit_presets(settings: Settings) -> Dict[str, RateLimitPolicy]:
    """Return the preset policies, with caps taken from ``settings``."""
    return {
        # Image analysis hits the paid AI API - strict limits
        AI_ANALYSIS: RateLimitPolicy(
            window_ms=MINUTE_MS,
            max_requests=settings.rate_limit_ai_per_minute,
            message="Too many image analysis requests. Please wait before uploading more images.",
        ),
        # Daily cap keeps one caller from exhausting the provider quota
        AI_DAILY: RateLimitPolicy(
            window_ms=DAY_MS,
            max_requests=settings.rate_limit_ai_per_day,
            message="Daily image analysis limit reached. Please try again tomorrow.",
        ),
        API_GENERAL: RateLimitPolicy(
            window_ms=FIFTEEN_MINUTES_MS,
            max_requests=settings.rate_limit_api_per_15min,
            message="Too many requests. Please slow down.",
        ),
        AUTH: RateLimitPolicy(
            window_ms=FIFTEEN_MINUTES_MS,
            max_requests=settings.rate_limit_auth_per_15min,
            message="Too many authentication attempts. Please try again later.",
        ),
    }
