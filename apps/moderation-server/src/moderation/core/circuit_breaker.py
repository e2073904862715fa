"""Trip switch in front of the external classifier.

Consecutive classifier failures open the circuit. While it is open every
model-backed classification is refused with ClassificationError, which the
dashboard turns into a pending record. Once the cool-down has passed the
circuit lets trial calls through; enough successful trials close it again,
a single failed trial re-opens it.

Reference: https://martinfowler.com/bliki/CircuitBreaker.html
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

import structlog
from prometheus_client import Gauge

from moderation.core.engine import ClassificationError

logger = structlog.get_logger()


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


CLASSIFIER_CIRCUIT_OPEN = Gauge(
    "moderation_classifier_circuit_open",
    "1 while model-backed classifications are refused",
    ["classifier_url"],
)


@dataclass
class ClassifierCircuit:
    """Circuit state for one classifier URL.

    All transitions happen in synchronous code, so concurrent classifications
    on the event loop never observe a half-applied update.
    """

    classifier_url: str
    failure_threshold: int = 5
    cooldown_seconds: float = 30.0
    trial_successes: int = 3
    clock: Callable[[], float] = time.monotonic

    state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    consecutive_failures: int = field(default=0, init=False)
    successful_trials: int = field(default=0, init=False)
    opened_at: float | None = field(default=None, init=False)

    def __post_init__(self):
        CLASSIFIER_CIRCUIT_OPEN.labels(classifier_url=self.classifier_url).set(0)

    def _move_to(self, state: CircuitState) -> None:
        if state == self.state:
            return
        logger.info(
            "classifier_circuit_changed",
            classifier_url=self.classifier_url,
            old_state=self.state.value,
            new_state=state.value,
        )
        self.state = state
        CLASSIFIER_CIRCUIT_OPEN.labels(classifier_url=self.classifier_url).set(
            1 if state == CircuitState.OPEN else 0
        )

    def cooldown_remaining(self) -> float:
        if self.state != CircuitState.OPEN or self.opened_at is None:
            return 0.0
        return max(0.0, self.cooldown_seconds - (self.clock() - self.opened_at))

    def ensure_closed(self) -> None:
        """Let a call through, or raise ClassificationError while open."""
        if self.state != CircuitState.OPEN:
            return

        remaining = self.cooldown_remaining()
        if remaining > 0:
            raise ClassificationError(
                f"Classifier circuit open for {self.classifier_url}, "
                f"retry in {remaining:.1f}s"
            )

        self.successful_trials = 0
        self._move_to(CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self.consecutive_failures = 0
        if self.state == CircuitState.HALF_OPEN:
            self.successful_trials += 1
            if self.successful_trials >= self.trial_successes:
                self._move_to(CircuitState.CLOSED)

    def record_failure(self) -> None:
        self.consecutive_failures += 1
        if (
            self.state == CircuitState.HALF_OPEN
            or self.consecutive_failures >= self.failure_threshold
        ):
            self.trip()

    def trip(self) -> None:
        """Open the circuit now, starting a fresh cool-down."""
        self.opened_at = self.clock()
        self._move_to(CircuitState.OPEN)

    def reset(self) -> None:
        """Close the circuit and forget past failures."""
        self.consecutive_failures = 0
        self.successful_trials = 0
        self.opened_at = None
        self._move_to(CircuitState.CLOSED)

    def snapshot(self) -> dict:
        return {
            "classifier_url": self.classifier_url,
            "state": self.state.value,
            "consecutive_failures": self.consecutive_failures,
            "cooldown_remaining": round(self.cooldown_remaining(), 3),
        }
