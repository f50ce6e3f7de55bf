"""Design analysis service.

Every analysis goes through the dispatch queue, so the service as a whole
respects the provider's pacing, and each queued call retries on its own.
"""

from typing import List, Optional

from designreview.app.core.config import Settings
from designreview.app.providers.gemini import GeminiProvider
from designreview.app.providers.models import FeedbackItem
from designreview.app.providers.retry import RetryPolicy, retry_call
from designreview.app.services.dispatch_queue import DispatchQueue


class AnalysisService:
    """Paced, retried access to the AI provider."""

    def __init__(
        self,
        provider: GeminiProvider,
        dispatch_queue: DispatchQueue,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.provider = provider
        self.dispatch_queue = dispatch_queue
        self.retry_policy = retry_policy or RetryPolicy()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnalysisService":
        provider = GeminiProvider(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
            max_output_tokens=settings.gemini_max_output_tokens,
            timeout=settings.gemini_timeout,
        )
        queue = DispatchQueue(
            max_concurrent=settings.ai_max_concurrent,
            min_interval=settings.ai_min_interval_ms / 1000,
        )
        return cls(provider, queue, RetryPolicy(max_attempts=settings.ai_max_attempts))

    async def analyze(self, image: bytes, mime_type: str) -> List[FeedbackItem]:
        """Analyze one image, waiting for a dispatch slot first."""
        return await self.dispatch_queue.execute(
            lambda: retry_call(
                lambda: self.provider.analyze_image(image, mime_type),
                self.retry_policy,
                operation="analyze_image",
            )
        )

    async def shutdown(self) -> None:
        await self.dispatch_queue.shutdown()
