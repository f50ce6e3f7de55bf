"""Tests for retry mechanism with backoff."""

import pytest
from unittest.mock import AsyncMock, patch

from designreview.app.exceptions import (
    AICredentialError,
    AIProviderError,
    AIQuotaExhaustedError,
    AIRateLimitError,
    ContentSafetyError,
)
from designreview.app.providers.retry import (
    RetryPolicy,
    is_rate_limit_error,
    is_retryable,
    retry_call,
    with_retry,
)


class TestRetryPolicy:
    """Tests for RetryPolicy configuration."""

    def test_default_values(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.base_delay == 1.0
        assert policy.max_delay == 60.0
        assert policy.exponential_base == 2.0

    def test_quota_delay_is_exponential(self):
        policy = RetryPolicy()
        assert policy.calculate_delay(1, rate_limited=True) == 2.0
        assert policy.calculate_delay(2, rate_limited=True) == 4.0
        assert policy.calculate_delay(3, rate_limited=True) == 8.0

    def test_quota_delay_is_capped(self):
        policy = RetryPolicy(max_delay=60.0)
        assert policy.calculate_delay(10, rate_limited=True) == 60.0

    def test_transient_delay_is_linear(self):
        policy = RetryPolicy()
        assert policy.calculate_delay(1, rate_limited=False) == 1.0
        assert policy.calculate_delay(2, rate_limited=False) == 2.0

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestErrorClassification:
    """Tests for quota and retryability checks."""

    def test_rate_limit_error_type(self):
        assert is_rate_limit_error(AIRateLimitError("slow down")) is True

    @pytest.mark.parametrize(
        "message",
        ["HTTP 429 Too Many Requests", "Quota exceeded", "RESOURCE_EXHAUSTED", "rate limit hit"],
    )
    def test_rate_limit_markers(self, message):
        assert is_rate_limit_error(RuntimeError(message)) is True

    def test_generic_error_not_rate_limit(self):
        assert is_rate_limit_error(RuntimeError("connection reset")) is False

    def test_safety_and_credentials_not_retryable(self):
        assert is_retryable(ContentSafetyError()) is False
        assert is_retryable(AICredentialError()) is False
        assert is_retryable(AIProviderError("boom")) is True


class TestRetryCall:
    """Tests for retry_call."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        func = AsyncMock(return_value="ok")

        result = await retry_call(func)

        assert result == "ok"
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_quota_errors_exhaust_attempts(self):
        """Three attempts, growing capped delays, quota-specific final error."""
        func = AsyncMock(side_effect=AIRateLimitError("Gemini API rate limit exceeded"))

        with patch(
            "designreview.app.providers.retry.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            with pytest.raises(AIQuotaExhaustedError) as exc_info:
                await retry_call(func, RetryPolicy(max_attempts=3))

        assert func.call_count == 3
        delays = [call.args[0] for call in mock_sleep.call_args_list]
        assert delays == [2.0, 4.0]
        assert all(d <= 60.0 for d in delays)
        assert "rate limit" in exc_info.value.message.lower()
        assert isinstance(exc_info.value.__cause__, AIRateLimitError)

    @pytest.mark.asyncio
    async def test_transient_errors_use_linear_backoff(self):
        func = AsyncMock(
            side_effect=[AIProviderError("connection reset"), AIProviderError("timeout"), "ok"]
        )

        with patch(
            "designreview.app.providers.retry.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            result = await retry_call(func, RetryPolicy(max_attempts=3))

        assert result == "ok"
        assert [call.args[0] for call in mock_sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_last_transient_error_reraised(self):
        func = AsyncMock(side_effect=AIProviderError("still broken"))

        with patch("designreview.app.providers.retry.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(AIProviderError, match="still broken"):
                await retry_call(func, RetryPolicy(max_attempts=2))

        assert func.call_count == 2

    @pytest.mark.asyncio
    async def test_content_safety_not_retried(self):
        func = AsyncMock(side_effect=ContentSafetyError())

        with patch(
            "designreview.app.providers.retry.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            with pytest.raises(ContentSafetyError):
                await retry_call(func)

        assert func.call_count == 1
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_credential_error_not_retried(self):
        func = AsyncMock(side_effect=AICredentialError())

        with pytest.raises(AICredentialError):
            await retry_call(func)

        assert func.call_count == 1


class TestWithRetryDecorator:
    """Tests for the decorator form."""

    @pytest.mark.asyncio
    async def test_decorator_retries(self):
        calls = []

        @with_retry(policy=RetryPolicy(max_attempts=3))
        async def flaky(value):
            calls.append(value)
            if len(calls) < 2:
                raise AIProviderError("transient")
            return value * 2

        with patch("designreview.app.providers.retry.asyncio.sleep", new_callable=AsyncMock):
            result = await flaky(21)

        assert result == 42
        assert calls == [21, 21]
        assert flaky.__name__ == "flaky"
