"""Shared Python utilities for the content moderation platform."""

from py_common.schemas import (
    ClassificationResult,
    ContentItem,
    ModelPredictRequest,
    ModelPredictResponse,
    ModerationConfiguration,
    ModerationStatus,
    SensitivityLevel,
    StrategyKind,
)
from py_common.metrics import (
    setup_metrics,
    observe_classification,
    CLASSIFICATIONS,
    CONTENT_RECORDED,
    REQUEST_DURATION,
)

__all__ = [
    "ClassificationResult",
    "ContentItem",
    "ModelPredictRequest",
    "ModelPredictResponse",
    "ModerationConfiguration",
    "ModerationStatus",
    "SensitivityLevel",
    "StrategyKind",
    "setup_metrics",
    "observe_classification",
    "CLASSIFICATIONS",
    "CONTENT_RECORDED",
    "REQUEST_DURATION",
]
