"""Tests for the classifier circuit."""

import pytest

from moderation.core.circuit_breaker import ClassifierCircuit, CircuitState
from moderation.core.engine import ClassificationError


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _circuit(**kwargs) -> tuple[ClassifierCircuit, FakeClock]:
    clock = FakeClock()
    circuit = ClassifierCircuit(classifier_url="http://classifier.test", clock=clock, **kwargs)
    return circuit, clock


def test_starts_closed():
    circuit, _ = _circuit()
    assert circuit.state == CircuitState.CLOSED
    circuit.ensure_closed()


def test_opens_after_consecutive_failures():
    circuit, _ = _circuit(failure_threshold=2)

    circuit.record_failure()
    assert circuit.state == CircuitState.CLOSED

    circuit.record_failure()
    assert circuit.state == CircuitState.OPEN
    with pytest.raises(ClassificationError, match="circuit open for http://classifier.test"):
        circuit.ensure_closed()


def test_success_resets_consecutive_failures():
    circuit, _ = _circuit(failure_threshold=2)

    circuit.record_failure()
    circuit.record_success()
    circuit.record_failure()

    assert circuit.state == CircuitState.CLOSED
    assert circuit.consecutive_failures == 1


def test_trial_calls_after_cooldown_close_the_circuit():
    circuit, clock = _circuit(failure_threshold=1, cooldown_seconds=30, trial_successes=2)
    circuit.record_failure()

    clock.now += 29
    with pytest.raises(ClassificationError):
        circuit.ensure_closed()

    clock.now += 1
    circuit.ensure_closed()
    assert circuit.state == CircuitState.HALF_OPEN

    circuit.record_success()
    assert circuit.state == CircuitState.HALF_OPEN
    circuit.record_success()
    assert circuit.state == CircuitState.CLOSED


def test_failed_trial_reopens_with_fresh_cooldown():
    circuit, clock = _circuit(failure_threshold=5, cooldown_seconds=10)
    circuit.trip()
    clock.now += 10
    circuit.ensure_closed()

    circuit.record_failure()

    assert circuit.state == CircuitState.OPEN
    assert circuit.cooldown_remaining() == pytest.approx(10)


def test_reset_and_snapshot():
    circuit, clock = _circuit(cooldown_seconds=30)
    circuit.trip()
    clock.now += 12

    assert circuit.snapshot() == {
        "classifier_url": "http://classifier.test",
        "state": "open",
        "consecutive_failures": 0,
        "cooldown_remaining": 18.0,
    }

    circuit.reset()
    assert circuit.snapshot()["state"] == "closed"
    assert circuit.snapshot()["cooldown_remaining"] == 0.0
    circuit.ensure_closed()
