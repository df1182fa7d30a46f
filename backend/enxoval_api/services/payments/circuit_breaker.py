"""
Circuit breaker for outbound calls to Mercado Pago and the email provider.

States:
1. CLOSED: requests pass through
2. OPEN: after ``failure_threshold`` consecutive failures, requests fail fast
3. HALF_OPEN: after ``timeout_seconds``, a few probe requests are let through

Only transport errors and 5xx answers should be raised inside ``call()``;
a 4xx from the gateway is a caller problem and must not open the circuit.

Usage:
    from enxoval_api.services.payments.circuit_breaker import mercadopago_breaker

    async with mercadopago_breaker.call():
        response = await client.post(...)
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from enum import Enum
from typing import AsyncGenerator

from shared.config.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    name: str
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout_seconds: float = 30.0
    half_open_max_calls: int = 2


@dataclass
class CircuitBreakerStats:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None


class CircuitBreakerError(Exception):
    """Raised when the circuit is open and the call was not attempted."""

    def __init__(self, breaker_name: str, retry_after: float):
        self.breaker_name = breaker_name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{breaker_name}' is open. Retry after {retry_after:.1f}s")


class CircuitBreaker:
    """Async circuit breaker. State changes are serialized with an asyncio lock."""

    def __init__(self, config: CircuitBreakerConfig):
        self.config = config
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float | None = None
        self._half_open_calls = 0
        self._lock = asyncio.Lock()
        self._stats = CircuitBreakerStats()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        return self._stats

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._stats.state_changes += 1

        logger.info(
            f"Circuit breaker '{self.config.name}' state change",
            old_state=old_state.value,
            new_state=new_state.value,
            failure_count=self._failure_count,
        )

        if new_state == CircuitState.CLOSED:
            self._failure_count = 0
            self._success_count = 0
            self._opened_at = None
        elif new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
        elif new_state == CircuitState.HALF_OPEN:
            self._success_count = 0
            self._half_open_calls = 0

    async def _acquire(self) -> tuple[bool, float]:
        """Return (allowed, retry_after_seconds)."""
        async with self._lock:
            if self._state == CircuitState.CLOSED:
                return True, 0.0

            if self._state == CircuitState.OPEN:
                elapsed = time.monotonic() - (self._opened_at or 0.0)
                if elapsed < self.config.timeout_seconds:
                    return False, self.config.timeout_seconds - elapsed
                self._transition_to(CircuitState.HALF_OPEN)

            if self._half_open_calls < self.config.half_open_max_calls:
                self._half_open_calls += 1
                return True, 0.0
            return False, 1.0

    async def record_success(self) -> None:
        async with self._lock:
            self._stats.total_calls += 1
            self._stats.successful_calls += 1
            self._stats.last_success_time = time.time()

            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                self._half_open_calls = max(0, self._half_open_calls - 1)
                if self._success_count >= self.config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
            else:
                self._failure_count = 0

    async def record_failure(self, error: Exception | None = None) -> None:
        async with self._lock:
            self._stats.total_calls += 1
            self._stats.failed_calls += 1
            self._stats.last_failure_time = time.time()
            self._failure_count += 1

            logger.warning(
                f"Circuit breaker '{self.config.name}' recorded failure",
                error=str(error) if error else None,
                failure_count=self._failure_count,
                threshold=self.config.failure_threshold,
            )

            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.config.failure_threshold
            ):
                self._transition_to(CircuitState.OPEN)

    @asynccontextmanager
    async def call(self) -> AsyncGenerator[None, None]:
        """
        Guard one outbound call.

        Raises:
            CircuitBreakerError: If the circuit is open.
        """
        allowed, retry_after = await self._acquire()
        if not allowed:
            self._stats.rejected_calls += 1
            raise CircuitBreakerError(self.config.name, retry_after)

        try:
            yield
        except Exception as e:
            await self.record_failure(e)
            raise
        await self.record_success()

    async def reset(self) -> None:
        async with self._lock:
            self._transition_to(CircuitState.CLOSED)
            self._half_open_calls = 0

    def snapshot(self) -> dict:
        return {"state": self._state.value, **asdict(self._stats)}


mercadopago_breaker = CircuitBreaker(
    CircuitBreakerConfig(
        name="mercadopago",
        failure_threshold=5,
        success_threshold=2,
        timeout_seconds=30.0,
        half_open_max_calls=2,
    )
)

email_breaker = CircuitBreaker(
    CircuitBreakerConfig(
        name="resend",
        failure_threshold=3,
        success_threshold=1,
        timeout_seconds=60.0,
        half_open_max_calls=1,
    )
)


def get_all_breaker_stats() -> dict[str, dict]:
    """Breaker states for the detailed health endpoint."""
    return {
        breaker.config.name: breaker.snapshot()
        for breaker in (mercadopago_breaker, email_breaker)
    }
