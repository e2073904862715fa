"""Test helpers."""


class FixedRandom:
    """Random source that always returns the same draw."""

    def __init__(self, value: float):
        self.value = value
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.value
