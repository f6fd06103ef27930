"""AI Resilience Layer — Retry and Circuit Breaker.

Provides resilient_call(), which wraps a single provider request with
tenacity retries on transient errors and a per-provider circuit breaker.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ── Circuit Breaker ─────────────────────────────────────────

@dataclass
class _ProviderState:
    failures: int = 0
    state: str = "closed"  # closed | open | half_open
    last_failure_time: float = 0.0


class CircuitBreaker:
    """Per-provider state machine: closed -> open -> half_open -> closed."""

    FAILURE_THRESHOLD = 3
    RECOVERY_TIMEOUT = 60  # seconds

    def __init__(self) -> None:
        self._providers: dict[str, _ProviderState] = {}
        self._lock = threading.Lock()

    def _get_state(self, provider: str) -> _ProviderState:
        if provider not in self._providers:
            self._providers[provider] = _ProviderState()
        return self._providers[provider]

    def record_success(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures = 0
            state.state = "closed"

    def record_failure(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures += 1
            state.last_failure_time = time.time()
            if state.failures >= self.FAILURE_THRESHOLD:
                if state.state != "open":
                    logger.warning("Circuit breaker opened for %s", provider)
                state.state = "open"

    def is_open(self, provider: str) -> bool:
        with self._lock:
            state = self._get_state(provider)
            if state.state == "closed":
                return False
            if state.state == "open":
                elapsed = time.time() - state.last_failure_time
                if elapsed >= self.RECOVERY_TIMEOUT:
                    state.state = "half_open"
                    return False  # allow one attempt
                return True
            return False

    def get_state(self, provider: str) -> str:
        with self._lock:
            return self._get_state(provider).state


_circuit_breaker = CircuitBreaker()


# ── Transient error detection ───────────────────────────────

_TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
)

_TRANSIENT_PATTERNS = (
    "rate limit",
    "429",
    "503",
    "502",
    "500",
    "overloaded",
    "temporarily unavailable",
    "deadline exceeded",
    "timeout",
    "connection",
)


def is_transient(exc: BaseException) -> bool:
    """Check if an exception is transient (worth retrying)."""
    if isinstance(exc, _TRANSIENT_ERRORS):
        return True
    msg = str(exc).lower()
    return any(p in msg for p in _TRANSIENT_PATTERNS)


class TransientLLMError(Exception):
    """Wrapper for transient LLM errors that should be retried."""


class CircuitOpenError(RuntimeError):
    """Raised without calling the provider while its breaker is open."""


@retry(
    retry=retry_if_exception_type(TransientLLMError),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    stop=stop_after_attempt(3),
    reraise=True,
)
def _call_with_retry(call: Callable[[], T]) -> T:
    try:
        return call()
    except Exception as exc:
        if is_transient(exc):
            logger.info("Transient provider error, retrying: %s", exc)
            raise TransientLLMError(str(exc)) from exc
        raise


def resilient_call(provider: str, call: Callable[[], T]) -> T:
    """Run *call* with retry and circuit breaking for *provider*.

    Raises CircuitOpenError while the provider's breaker is open; otherwise
    re-raises the last error from *call* (TransientLLMError after the
    retries are exhausted).
    """
    if _circuit_breaker.is_open(provider):
        raise CircuitOpenError(f"Circuit breaker open for provider: {provider}")

    start = time.time()
    try:
        result = _call_with_retry(call)
    except Exception:
        _circuit_breaker.record_failure(provider)
        raise
    _circuit_breaker.record_success(provider)
    logger.debug("%s call finished in %dms", provider, int((time.time() - start) * 1000))
    return result


def get_circuit_breaker() -> CircuitBreaker:
    """Access the module-level circuit breaker singleton."""
    return _circuit_breaker
