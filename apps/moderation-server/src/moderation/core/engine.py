"""Rule-based content classification.

Classifies text into a moderation status, confidence and category tags
using keyword matching plus a jittered confidence score.
"""

import random
from collections.abc import Mapping
from typing import Protocol

from pydantic import ValidationError

from py_common.schemas import (
    ClassificationResult,
    ModerationConfiguration,
    ModerationStatus,
    SensitivityLevel,
)

# Substring lexicons (not word-boundary aware: "hateful" matches "hate")
NEGATIVE_PATTERNS = [
    "hate",
    "terrible",
    "scam",
    "awful",
    "worst",
    "stupid",
    "idiot",
    "garbage",
    "useless",
    "fraud",
]

POSITIVE_PATTERNS = [
    "great",
    "excellent",
    "amazing",
    "good",
    "love",
    "helpful",
    "best",
    "wonderful",
    "fantastic",
    "recommend",
]

HATE_PATTERNS = ["hate"]
ACCUSATION_PATTERNS = ["scam", "fraud"]
PROMOTIONAL_PATTERNS = ["buy", "discount", "offer"]

BASE_CONFIDENCE = 0.5
CONFIDENCE_JITTER = 0.3
LONG_TEXT_LENGTH = 100
LONG_TEXT_BONUS = 0.1
MATCH_BONUS = 0.1
MAX_CONFIDENCE = 0.98

MEDIUM_FLAG_THRESHOLD = 0.7
AUTO_FLAG_THRESHOLD = 0.8
APPROVE_THRESHOLD = 0.65


class RandomSource(Protocol):
    """Anything with a ``random()`` method returning a float in [0, 1)."""

    def random(self) -> float: ...


class ClassificationError(Exception):
    """Raised when a classification could not be produced.

    Distinct from a valid ``pending`` outcome.
    """


def _contains_any(text: str, patterns: list[str]) -> bool:
    return any(pattern in text for pattern in patterns)


def resolve_configuration(
    config: ModerationConfiguration | Mapping | None,
) -> ModerationConfiguration:
    """Coerce a caller-supplied configuration into a ModerationConfiguration.

    Mappings are validated structurally; missing fields take their defaults
    and unknown keys are ignored.

    Raises:
        ClassificationError: If the configuration has the wrong shape or
            holds invalid values for known fields.
    """
    if config is None:
        return ModerationConfiguration()
    if isinstance(config, ModerationConfiguration):
        return config
    if not isinstance(config, Mapping):
        raise ClassificationError(
            f"Configuration must be a mapping, got {type(config).__name__}"
        )
    try:
        return ModerationConfiguration.model_validate(dict(config))
    except ValidationError as e:
        raise ClassificationError(f"Invalid moderation configuration: {e}") from e


def detect_categories(text_lower: str) -> tuple[list[str], bool, bool]:
    """
    Tag lower-cased text with categories in detection order.

    Returns:
        Tuple of (categories, has_negative, has_positive)
    """
    has_negative = _contains_any(text_lower, NEGATIVE_PATTERNS)
    has_positive = _contains_any(text_lower, POSITIVE_PATTERNS)

    categories = []

    if has_negative:
        categories.append("negative")
        if _contains_any(text_lower, HATE_PATTERNS):
            categories.append("hate speech")
        if _contains_any(text_lower, ACCUSATION_PATTERNS):
            categories.append("accusation")

    if has_positive:
        categories.append("positive")

    if not has_negative and not has_positive:
        categories.append("neutral")

    if _contains_any(text_lower, PROMOTIONAL_PATTERNS):
        categories.append("promotional")

    return categories, has_negative, has_positive


def score_confidence(text: str, matched: bool, draw: float) -> float:
    """Turn a uniform draw in [0, 1) into a capped confidence score."""
    confidence = BASE_CONFIDENCE + draw * CONFIDENCE_JITTER

    # Longer content is classified more confidently
    if len(text) > LONG_TEXT_LENGTH:
        confidence += LONG_TEXT_BONUS

    if matched:
        confidence += MATCH_BONUS

    return min(confidence, MAX_CONFIDENCE)


def decide_status(
    has_negative: bool,
    confidence: float,
    config: ModerationConfiguration,
) -> ModerationStatus:
    """Map detection results and configuration to a moderation status."""
    if has_negative:
        level = config.sensitivity_level
        if level == SensitivityLevel.HIGH:
            return ModerationStatus.FLAGGED
        if level == SensitivityLevel.MEDIUM and confidence > MEDIUM_FLAG_THRESHOLD:
            return ModerationStatus.FLAGGED
        if config.auto_moderation and confidence > AUTO_FLAG_THRESHOLD:
            return ModerationStatus.FLAGGED
        return ModerationStatus.PENDING

    if confidence < APPROVE_THRESHOLD:
        return ModerationStatus.PENDING

    return ModerationStatus.APPROVED


def classify(
    text: str,
    config: ModerationConfiguration | Mapping | None = None,
    *,
    rng: RandomSource | None = None,
) -> ClassificationResult:
    """
    Classify text under a moderation configuration.

    The only non-determinism is the confidence jitter, drawn from ``rng``
    (the ``random`` module when omitted). The ``categories``, ``sources`` and
    ``ai_model`` configuration fields are accepted but not consulted.

    Returns:
        ClassificationResult with status, confidence and categories

    Raises:
        ClassificationError: If the configuration is malformed.
    """
    configuration = resolve_configuration(config)
    source = rng if rng is not None else random

    text_lower = text.lower()
    categories, has_negative, has_positive = detect_categories(text_lower)

    confidence = score_confidence(text, has_negative or has_positive, source.random())
    status = decide_status(has_negative, confidence, configuration)

    return ClassificationResult(
        status=status,
        confidence=confidence,
        categories=categories,
    )
