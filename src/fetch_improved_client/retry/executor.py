"""
Attempt loop for the client's retry policy
"""
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .config import async_sleep, calculate_backoff_delay, merge_config, validate_retry_config
from .types import EventType, RetryConfig, RetryEvent, RetryEventListener, RetryOptions, RetryResult


T = TypeVar("T")

logger = logging.getLogger("fetch_improved_client.retry")


class RetryExecutor:
    """
    Runs one async operation under a retry policy.

    An attempt fails when the operation raises an Exception; a should_retry
    predicate in RetryOptions can veto individual retries. Between attempts
    the executor sleeps for the backoff delay. It stops when an attempt
    succeeds, the retry count is spent, or the next wait would overrun
    max_elapsed_seconds. The failing attempt's exception is then re-raised
    as the same object. asyncio.CancelledError is not an Exception, so
    cancelling the awaiting task ends the loop at once.

    Listeners registered with on() receive a RetryEvent at each step.

    Example:
        executor = RetryExecutor(RetryConfig(max_retries=2))
        result = await executor.execute(lambda: transport.handle_async_request(request))
        response = result.result
    """

    def __init__(self, config: Optional[RetryConfig] = None, executor_id: Optional[str] = None):
        """
        Args:
            config: Retry policy. Default: DEFAULT_RETRY_CONFIG
            executor_id: Name used in debug logs. Default: derived from the clock
        """
        self._config = merge_config(config)
        validate_retry_config(self._config)
        self._id = executor_id or f"retry-{time.time_ns() // 1_000_000}"
        self._listeners: list[RetryEventListener] = []

    def _notify(self, event_type: EventType, attempt: int, **data: Any) -> None:
        event = RetryEvent(type=event_type, attempt=attempt, data=data)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.debug(f"RetryExecutor[{self._id}]: listener failed on {event_type}", exc_info=True)

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        options: Optional[RetryOptions] = None,
    ) -> RetryResult[T]:
        """
        Await fn() until it succeeds or the policy gives up.

        Args:
            fn: Zero-argument coroutine function, called once per attempt
            options: Per-call overrides and metadata attached to events

        Returns:
            RetryResult holding fn's return value and timing figures
        """
        opts = options or RetryOptions()
        metadata = opts.metadata
        retries_allowed = self._config.max_retries if opts.max_retries is None else opts.max_retries
        deadline = self._config.max_elapsed_seconds

        started = time.monotonic()
        waited = 0.0
        attempt = 0

        while True:
            if metadata:
                self._notify("attempt:start", attempt, metadata=metadata)
            else:
                self._notify("attempt:start", attempt)
            attempt_started = time.monotonic()

            try:
                value = await fn()
            except Exception as error:
                again = self._can_retry(error, attempt, retries_allowed, opts.should_retry)
                self._notify("attempt:fail", attempt, error=str(error), will_retry=again, metadata=metadata)
                if not again:
                    raise

                delay = calculate_backoff_delay(attempt, self._config)
                elapsed = time.monotonic() - started
                if deadline is not None and elapsed + delay > deadline:
                    self._notify(
                        "retry:abort",
                        attempt,
                        reason="max_elapsed_seconds",
                        elapsed_seconds=elapsed,
                        metadata=metadata,
                    )
                    raise

                self._notify("retry:wait", attempt, delay_seconds=delay, error=str(error), metadata=metadata)
                waited += delay
                await async_sleep(delay)
                attempt += 1
                continue

            self._notify(
                "attempt:success",
                attempt,
                duration_seconds=time.monotonic() - attempt_started,
                metadata=metadata,
            )
            return RetryResult(
                result=value,
                retries=attempt,
                total_time_seconds=time.monotonic() - started,
                delay_time_seconds=waited,
            )

    @staticmethod
    def _can_retry(
        error: Exception,
        attempt: int,
        retries_allowed: int,
        predicate: Optional[Callable[[Exception, int], bool]],
    ) -> bool:
        if attempt >= retries_allowed:
            return False
        return predicate(error, attempt) if predicate is not None else True

    def on(self, listener: RetryEventListener) -> Callable[[], None]:
        """Subscribe to events. Returns a callable that unsubscribes."""
        self._listeners.append(listener)
        return lambda: self.off(listener)

    def off(self, listener: RetryEventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def id(self) -> str:
        return self._id

    @property
    def config(self) -> RetryConfig:
        """Policy in effect for this executor."""
        return self._config


def create_retry_executor(
    config: Optional[RetryConfig] = None,
    executor_id: Optional[str] = None,
) -> RetryExecutor:
    """Shorthand for RetryExecutor(config, executor_id)."""
    return RetryExecutor(config, executor_id)
