"""Retry and circuit breaking for calls to unreliable dependencies."""

from .circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from .retry import default_is_retryable, retry_with_policy, retryable, with_retry

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "default_is_retryable",
    "retry_with_policy",
    "retryable",
    "with_retry",
]
