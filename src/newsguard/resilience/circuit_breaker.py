"""Call-driven circuit breakers for upstream dependencies."""

import functools
import time
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from ..errors import ServiceUnavailable
from ..models import BreakerSnapshot, CircuitState

T = TypeVar("T")

Clock = Callable[[], float]


class CircuitBreaker:
    """Fail fast when a dependency keeps failing.

    State only changes inside execute(): an open breaker becomes half-open
    when a call arrives after ``reset_timeout`` seconds without a failure.
    There is no background timer.
    """

    def __init__(
        self,
        name: str,
        threshold: int = 5,
        reset_timeout: float = 30.0,
        clock: Clock = time.monotonic,
    ):
        """Initialize breaker.

        Args:
            name: Dependency name, used in errors and logs
            threshold: Failures before the breaker opens
            reset_timeout: Seconds to stay open before a probe call
            clock: Monotonic time source
        """
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.name = name
        self.threshold = threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> float | None:
        return self._last_failure_time

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` unless the breaker is open.

        Raises:
            ServiceUnavailable: The breaker is open; ``operation`` was not called
            Exception: Whatever ``operation`` raised, after recording the failure
        """
        if self._state is CircuitState.OPEN:
            elapsed = self._clock() - (self._last_failure_time or 0.0)
            if elapsed > self.reset_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info(
                    f"Circuit half-open for {self.name} after {elapsed:.1f}s cooldown"
                )
            else:
                raise ServiceUnavailable(
                    self.name, retry_after=max(0.0, self.reset_timeout - elapsed)
                )

        try:
            result = await operation()
        except Exception as e:
            self._on_failure(e)
            raise

        self._on_success()
        return result

    def _on_success(self) -> None:
        if self._state is not CircuitState.CLOSED:
            logger.info(f"Circuit closed for {self.name} after successful probe")
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def _on_failure(self, error: BaseException) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._state is CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning(f"Circuit re-opened for {self.name}: probe failed with {error}")
        elif self._failure_count >= self.threshold and self._state is CircuitState.CLOSED:
            self._state = CircuitState.OPEN
            logger.error(
                f"Circuit opened for {self.name} after {self._failure_count} "
                f"failures. Cooldown: {self.reset_timeout}s. Last error: {error}"
            )

    def reset(self) -> None:
        """Force the breaker closed (administrative)."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None

    def snapshot(self) -> BreakerSnapshot:
        return BreakerSnapshot(
            name=self.name,
            state=self._state,
            failure_count=self._failure_count,
            last_failure_time=self._last_failure_time,
            threshold=self.threshold,
            reset_timeout=self.reset_timeout,
        )


class CircuitBreakerRegistry:
    """Named breakers, created on first use and kept for the registry's lifetime."""

    def __init__(
        self,
        threshold: int = 5,
        reset_timeout: float = 30.0,
        clock: Clock = time.monotonic,
    ):
        self.threshold = threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        """Get or create the breaker for ``name``."""
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(
                name,
                threshold=self.threshold,
                reset_timeout=self.reset_timeout,
                clock=self._clock,
            )
            self._breakers[name] = breaker
            logger.debug(f"Created circuit breaker for {name}")
        return breaker

    async def execute(self, name: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.get(name).execute(operation)

    def guard(self, name: str):
        """Decorator routing every call of an async function through ``name``'s breaker."""

        def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
            @functools.wraps(func)
            async def wrapper(*args: Any, **kwargs: Any) -> T:
                return await self.execute(name, functools.partial(func, *args, **kwargs))

            return wrapper

        return decorator

    def snapshot(self) -> dict[str, BreakerSnapshot]:
        return {name: breaker.snapshot() for name, breaker in self._breakers.items()}

    def reset(self, name: str | None = None) -> None:
        """Reset one breaker, or all of them."""
        if name is not None:
            if name in self._breakers:
                self._breakers[name].reset()
            return
        for breaker in self._breakers.values():
            breaker.reset()

    def __contains__(self, name: str) -> bool:
        return name in self._breakers

    def __len__(self) -> int:
        return len(self._breakers)
