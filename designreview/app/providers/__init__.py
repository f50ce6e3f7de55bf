"""AI provider clients and call resilience helpers."""

from designreview.app.providers.gemini import GeminiProvider
from designreview.app.providers.models import BoundingBox, FeedbackItem
from designreview.app.providers.retry import RetryPolicy, retry_call, with_retry

__all__ = [
    "GeminiProvider",
    "BoundingBox",
    "FeedbackItem",
    "RetryPolicy",
    "retry_call",
    "with_retry",
]
