"""Tests for circuit breakers and the breaker registry."""

from unittest.mock import AsyncMock

import pytest

from newsguard.errors import ServiceUnavailable
from newsguard.models import CircuitState
from newsguard.resilience import CircuitBreaker, CircuitBreakerRegistry


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    """Breaker that opens after two failures and cools down for 30s."""
    return CircuitBreaker("news-api", threshold=2, reset_timeout=30.0, clock=clock)


async def fail():
    raise ConnectionError("upstream down")


async def succeed():
    return "fresh"


class TestCircuitBreaker:
    """Test breaker state transitions."""

    @pytest.mark.asyncio
    async def test_success_keeps_breaker_closed(self, breaker):
        assert await breaker.execute(succeed) == "fresh"
        assert breaker.state is CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_opens_after_threshold_failures(self, breaker):
        """Test that the breaker opens and then fails fast without calling."""
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.execute(fail)

        assert breaker.state is CircuitState.OPEN

        operation = AsyncMock(return_value="fresh")
        with pytest.raises(ServiceUnavailable) as exc_info:
            await breaker.execute(operation)

        operation.assert_not_awaited()
        assert exc_info.value.status_code == 503
        assert "news-api" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        with pytest.raises(ConnectionError):
            await breaker.execute(fail)
        await breaker.execute(succeed)
        with pytest.raises(ConnectionError):
            await breaker.execute(fail)

        assert breaker.state is CircuitState.CLOSED
        assert breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_stays_open_until_timeout_passes(self, breaker, clock):
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.execute(fail)

        clock.advance(30.0)
        with pytest.raises(ServiceUnavailable):
            await breaker.execute(succeed)
        assert breaker.state is CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_half_open_probe_success_closes(self, breaker, clock):
        """Test recovery: a successful probe closes the breaker."""
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.execute(fail)

        clock.advance(31.0)
        assert await breaker.execute(succeed) == "fresh"

        assert breaker.state is CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_half_open_probe_failure_reopens(self, breaker, clock):
        """Test that a failed probe reopens and restarts the cooldown."""
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.execute(fail)

        clock.advance(31.0)
        with pytest.raises(ConnectionError):
            await breaker.execute(fail)

        assert breaker.state is CircuitState.OPEN
        assert breaker.last_failure_time == clock.now

        clock.advance(10.0)
        with pytest.raises(ServiceUnavailable):
            await breaker.execute(succeed)

    @pytest.mark.asyncio
    async def test_reset_forces_closed(self, breaker):
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.execute(fail)

        breaker.reset()

        assert breaker.state is CircuitState.CLOSED
        assert await breaker.execute(succeed) == "fresh"

    def test_threshold_must_be_positive(self):
        with pytest.raises(ValueError):
            CircuitBreaker("x", threshold=0)

    @pytest.mark.asyncio
    async def test_snapshot(self, breaker, clock):
        with pytest.raises(ConnectionError):
            await breaker.execute(fail)

        snapshot = breaker.snapshot()
        assert snapshot.name == "news-api"
        assert snapshot.state is CircuitState.CLOSED
        assert snapshot.failure_count == 1
        assert snapshot.last_failure_time == clock.now


class TestCircuitBreakerRegistry:
    """Test named breaker lookup."""

    @pytest.mark.asyncio
    async def test_breakers_are_isolated_by_name(self, clock):
        registry = CircuitBreakerRegistry(threshold=1, reset_timeout=60.0, clock=clock)

        with pytest.raises(ConnectionError):
            await registry.execute("summarizer", fail)

        assert registry.get("summarizer").state is CircuitState.OPEN
        assert await registry.execute("news-api", succeed) == "fresh"
        assert "summarizer" in registry
        assert len(registry) == 2

    def test_get_returns_same_instance(self):
        registry = CircuitBreakerRegistry()
        assert registry.get("a") is registry.get("a")

    def test_separate_registries_share_nothing(self):
        assert CircuitBreakerRegistry().get("a") is not CircuitBreakerRegistry().get("a")

    @pytest.mark.asyncio
    async def test_guard_decorator(self, clock):
        registry = CircuitBreakerRegistry(threshold=1, clock=clock)

        @registry.guard("news-api")
        async def fetch(topic):
            raise ConnectionError(topic)

        with pytest.raises(ConnectionError):
            await fetch("tech")
        with pytest.raises(ServiceUnavailable):
            await fetch("tech")

    @pytest.mark.asyncio
    async def test_reset_all_and_snapshot(self, clock):
        registry = CircuitBreakerRegistry(threshold=1, clock=clock)
        for name in ("a", "b"):
            with pytest.raises(ConnectionError):
                await registry.execute(name, fail)

        assert {s.state for s in registry.snapshot().values()} == {CircuitState.OPEN}

        registry.reset("a")
        assert registry.get("a").state is CircuitState.CLOSED
        assert registry.get("b").state is CircuitState.OPEN

        registry.reset()
        assert registry.get("b").state is CircuitState.CLOSED
