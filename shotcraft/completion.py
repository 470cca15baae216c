import asyncio
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

import litellm
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt

from shotcraft._core.asyncio import SemaphoreExecutor
from shotcraft._core.environment import settings
from shotcraft._core.error import CompletionFailure
from shotcraft._core.logging import get_logger
from shotcraft._core.networking import RateLimitInfo
from shotcraft.llm_registry import LiteLLMWrapper, LLMRegistry

logger = get_logger(__name__)

RETRYABLE_LITELLM_EXCEPTIONS = (
    litellm.exceptions.RateLimitError,
    litellm.exceptions.APIConnectionError,
    litellm.exceptions.Timeout,
    litellm.exceptions.ServiceUnavailableError,
    litellm.exceptions.InternalServerError,
    asyncio.TimeoutError,
)


@runtime_checkable
class CompletionClient(Protocol):
    """
    The single network-facing boundary: text prompt in, generated text out.

    Implementations raise CompletionFailure when the request cannot be served.
    """

    async def complete(self, prompt: str, model: str, temperature: float) -> str: ...


def _is_rate_limit_message(error_str: str) -> bool:
    lowered = error_str.lower()
    return '429' in lowered or 'rate limit' in lowered


def calculate_retry_wait(retry_state: RetryCallState) -> float:
    """
    Calculate wait time with rate-limit awareness.

    - For 429 errors: waits for the parsed reset time (capped at 2 minutes)
    - For other errors: exponential backoff capped at 10 seconds

    Args:
        retry_state: The retry state from tenacity

    Returns:
        Number of seconds to wait before next retry
    """
    exception = retry_state.outcome.exception()

    if exception and _is_rate_limit_message(str(exception)):
        rate_info = RateLimitInfo.from_error(str(exception))
        if rate_info:
            actual_wait = min(rate_info.get_wait_time(buffer_seconds=1.0), 120.0)
            logger.warning(
                f'⏱️  Rate limit hit: {rate_info}. '
                f'Waiting {actual_wait:.1f}s for reset (attempt {retry_state.attempt_number})'
            )
            return actual_wait

    attempt = retry_state.attempt_number - 1
    actual_wait = min(1.0 * (2**attempt), 10.0)
    logger.warning(
        f'⏱️  Retrying with exponential backoff: {actual_wait:.1f}s '
        f'(attempt {retry_state.attempt_number})'
    )
    return actual_wait


def log_retry_error(retry_state: RetryCallState):
    """Log a failed completion attempt before it is retried."""
    exception = retry_state.outcome.exception()
    logger.warning(
        f'⚠️  Completion attempt {retry_state.attempt_number} failed: '
        f'{type(exception).__name__}: {exception}'
    )


def is_retryable_error(retry_state: RetryCallState) -> bool:
    """
    Extracts the exception from tenacity's RetryCallState and decides
    whether it is transient.
    """
    exception = retry_state.outcome.exception()
    if not isinstance(exception, Exception):
        return False

    if isinstance(exception, RETRYABLE_LITELLM_EXCEPTIONS):
        return True

    # Gateways sometimes wrap a 429 inside a generic API error
    if isinstance(exception, litellm.exceptions.APIError) and _is_rate_limit_message(
        str(exception)
    ):
        return True

    logger.debug(f'Not retrying {type(exception).__name__}: {exception}')
    return False


class LiteLLMCompletionClient:
    """
    Completion client that routes requests through LiteLLM.

    Each request is bounded by a semaphore, every attempt is wrapped in a
    timeout, and transient provider errors are retried with tenacity. Whatever
    still fails surfaces as CompletionFailure.

    Example:
        >>> client = LiteLLMCompletionClient(provider='deepseek')
        >>> text = await client.complete('2+2=?', model='deepseek-chat', temperature=0.0)
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        registry: Optional[LLMRegistry] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        max_concurrent: Optional[int] = None,
        wait: Optional[Callable[[RetryCallState], float]] = None,
        **llm_kwargs: Any,
    ):
        """
        Args:
            provider: Registry provider name. Defaults to settings.llm_provider.
            registry: Pre-built registry; takes precedence over `provider`.
            timeout: Seconds per attempt. Defaults to settings.request_timeout.
            max_retries: Attempts per request. Defaults to settings.max_retries.
            max_concurrent: In-flight bound. Defaults to settings.max_concurrent_requests.
            wait: Tenacity wait strategy. Defaults to calculate_retry_wait.
            **llm_kwargs: Extra kwargs forwarded to every LiteLLM call.
        """
        self.registry = registry or LLMRegistry(
            provider=provider or settings.llm_provider
        )
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.max_retries = (
            max_retries if max_retries is not None else settings.max_retries
        )
        if self.max_retries < 1:
            raise ValueError(f'max_retries must be >= 1, got {self.max_retries}')
        self.max_concurrent = (
            max_concurrent
            if max_concurrent is not None
            else settings.max_concurrent_requests
        )
        if self.max_concurrent < 1:
            raise ValueError(
                f'max_concurrent must be >= 1, got {self.max_concurrent}'
            )
        self._wait = wait or calculate_retry_wait
        self._llm_kwargs = llm_kwargs
        self._llms: Dict[str, LiteLLMWrapper] = {}
        self._executor: Optional[SemaphoreExecutor] = None
        self._executor_loop: Optional[asyncio.AbstractEventLoop] = None

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(timeout={self.timeout}, '
            f'max_retries={self.max_retries}, max_concurrent={self.max_concurrent})'
        )

    def get_llm(self, model: str) -> LiteLLMWrapper:
        """Return the cached LiteLLM wrapper for `model`."""
        if model not in self._llms:
            self._llms[model] = self.registry.get_llm(model, **self._llm_kwargs)
        return self._llms[model]

    def _get_executor(self) -> SemaphoreExecutor:
        # asyncio primitives are bound to the loop that first uses them
        loop = asyncio.get_running_loop()
        if self._executor is None or self._executor_loop is not loop:
            self._executor = SemaphoreExecutor(max_concurrent=self.max_concurrent)
            self._executor_loop = loop
        return self._executor

    async def _complete_with_retry(
        self, llm: LiteLLMWrapper, prompt: str, temperature: float
    ) -> str:
        async for attempt in AsyncRetrying(
            wait=self._wait,
            retry=is_retryable_error,
            after=log_retry_error,
            stop=stop_after_attempt(self.max_retries),
            reraise=True,
        ):
            with attempt:
                response = await asyncio.wait_for(
                    llm.acomplete(prompt, temperature=temperature),
                    timeout=self.timeout,
                )
        return response.text

    async def complete(self, prompt: str, model: str, temperature: float) -> str:
        """
        Send one prompt to `model` and return the generated text.

        Raises:
            CompletionFailure: The request failed, timed out, or exhausted its retries.
        """
        llm = self.get_llm(model)
        try:
            return await self._get_executor().run(
                self._complete_with_retry, llm, prompt, temperature
            )
        except asyncio.TimeoutError as e:
            raise CompletionFailure(
                f'Completion request to {llm.model} timed out after {self.timeout}s',
                model=model,
            ) from e
        except Exception as e:
            raise CompletionFailure(
                f'Completion request to {llm.model} failed: {type(e).__name__}: {e}',
                model=model,
            ) from e


_default_client: Optional[LiteLLMCompletionClient] = None


def get_default_client() -> LiteLLMCompletionClient:
    """Lazily build the process-wide client configured from settings."""
    global _default_client
    if _default_client is None:
        _default_client = LiteLLMCompletionClient()
    return _default_client
