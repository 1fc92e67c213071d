"""Chaos controller - failure injection policy consulted by the HTTP middleware"""

import threading
from typing import Optional

from nova_sandbox.domain.exceptions import InvalidConfigurationError
from nova_sandbox.domain.models import ChaosMode
from nova_sandbox.domain.rng import SeededRandom
from nova_sandbox.infrastructure.observability.metrics import chaos_failure_counter
from nova_sandbox.utils.clock import SystemClock
from nova_sandbox.utils.date_utils import epoch_ms

RANDOM_LATENCY_MS = (2000, 8000)
RANDOM_FAILURE_RATE = (0.2, 0.3)


class ChaosController:
    """
    Holds the current chaos mode and decides per request what to inject.

    A zero latency or failure rate means "pick one at random" when the
    matching mode is active.
    """

    def __init__(
        self,
        mode: str = ChaosMode.NORMAL.value,
        latency_ms: int = 0,
        failure_rate: float = 0.0,
        rng: Optional[SeededRandom] = None,
    ):
        self._lock = threading.Lock()
        self.rng = rng or SeededRandom(epoch_ms(SystemClock().now()))
        self.failures_injected = 0
        self.mode = ChaosMode.NORMAL
        self.latency_ms = 0
        self.failure_rate = 0.0
        self.set_mode(mode, latency_ms, failure_rate)

    def set_mode(self, mode: str, latency_ms: Optional[int] = None, failure_rate: Optional[float] = None) -> None:
        try:
            chaos_mode = ChaosMode(mode)
        except ValueError:
            raise InvalidConfigurationError(f"Unknown chaos mode: {mode}")
        if latency_ms is not None and latency_ms < 0:
            raise InvalidConfigurationError("latency_ms must be >= 0")
        if failure_rate is not None and not 0 <= failure_rate <= 1:
            raise InvalidConfigurationError("failure_rate must be between 0 and 1")

        with self._lock:
            self.mode = chaos_mode
            if latency_ms is not None:
                self.latency_ms = latency_ms
            if failure_rate is not None:
                self.failure_rate = failure_rate

    def reset(self) -> None:
        with self._lock:
            self.mode = ChaosMode.NORMAL
            self.latency_ms = 0
            self.failure_rate = 0.0

    def reset_stats(self) -> None:
        with self._lock:
            self.failures_injected = 0

    def reseed(self, rng: SeededRandom) -> None:
        with self._lock:
            self.rng = rng

    def latency_seconds(self) -> float:
        with self._lock:
            if self.latency_ms > 0:
                return self.latency_ms / 1000
            return self.rng.next_int(*RANDOM_LATENCY_MS) / 1000

    def should_fail(self) -> bool:
        with self._lock:
            low, high = RANDOM_FAILURE_RATE
            rate = self.failure_rate if self.failure_rate > 0 else low + self.rng.next() * (high - low)
            return self.rng.next() < rate

    def record_failure(self) -> None:
        with self._lock:
            self.failures_injected += 1
        chaos_failure_counter.labels(mode=self.mode.value).inc()

    def describe(self) -> dict:
        return {
            "mode": self.mode.value,
            "latency_ms": self.latency_ms,
            "failure_rate": self.failure_rate,
            "failures_injected": self.failures_injected,
        }
