"""Common Pydantic schemas for the moderation services."""

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SensitivityLevel(str, Enum):
    """How aggressively negative content is flagged."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ModerationStatus(str, Enum):
    """Outcome of a moderation decision."""

    APPROVED = "approved"
    FLAGGED = "flagged"
    PENDING = "pending"


class StrategyKind(str, Enum):
    """Which classification strategy handles a call."""

    RULE_BASED = "rule_based"
    MODEL_BACKED = "model_backed"


class UserRole(str, Enum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    VIEWER = "viewer"


class ModerationConfiguration(BaseModel):
    """Moderation settings passed into every classification call.

    Accepts both snake_case and the dashboard's camelCase keys. Unknown keys
    are ignored. ``categories``, ``sources`` and ``ai_model`` are carried
    along but do not influence the decision.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    sensitivity_level: SensitivityLevel = Field(
        default=SensitivityLevel.MEDIUM,
        validation_alias=AliasChoices("sensitivity_level", "sensitivityLevel"),
        description="Flag aggressiveness for negative content",
    )
    auto_moderation: bool = Field(
        default=False,
        validation_alias=AliasChoices("auto_moderation", "autoModeration"),
        description="Allow flagging without human review",
    )
    categories: dict[str, bool] = Field(default_factory=dict, description="Category toggles")
    sources: dict[str, bool] = Field(default_factory=dict, description="Source toggles")
    ai_model: str = Field(
        default="advanced",
        validation_alias=AliasChoices("ai_model", "aiModel"),
        description="Model tier label",
    )
    strategy: StrategyKind = Field(
        default=StrategyKind.RULE_BASED,
        description="Classification strategy variant",
    )


class ClassificationResult(BaseModel):
    """Result of classifying a single piece of text."""

    model_config = ConfigDict(frozen=True)

    status: ModerationStatus = Field(..., description="Moderation outcome")
    confidence: float = Field(..., ge=0.0, le=0.98, description="Self-reported certainty")
    categories: list[str] = Field(..., min_length=1, description="Tags in detection order")


class ModelPredictRequest(BaseModel):
    """Request schema for an external classifier's /predict endpoint."""

    text: str = Field(..., description="Text to analyze")
    request_id: str = Field(..., description="Request ID for tracing")
    sensitivity_level: SensitivityLevel = Field(default=SensitivityLevel.MEDIUM)
    auto_moderation: bool = Field(default=False)


class ModelPredictResponse(BaseModel):
    """Response schema from an external classifier's /predict endpoint."""

    status: ModerationStatus = Field(..., description="Moderation outcome")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence score")
    categories: list[str] = Field(..., min_length=1, description="Detected categories")
    latency_ms: int = Field(default=0, ge=0, description="Inference latency in milliseconds")


class ClassifyRequest(BaseModel):
    """Request schema for the engine-only classification endpoint."""

    text: str = Field(..., max_length=50000, description="Text to classify")
    config: ModerationConfiguration | None = Field(
        default=None, description="Configuration (defaults to current settings)"
    )


class SubmitContentRequest(BaseModel):
    """Request schema for submitting content to the moderation queue."""

    text: str = Field(..., max_length=50000, description="Content to moderate")
    source: str = Field(default="Website", description="Where the content came from")

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be empty")
        return value


class ContentItem(BaseModel):
    """A moderated piece of content."""

    id: str
    content: str
    timestamp: datetime
    status: ModerationStatus
    confidence: float = Field(..., ge=0.0, le=1.0)
    categories: list[str] = Field(default_factory=list)
    source: str | None = None
    moderated_by: str | None = None


class StatusUpdateRequest(BaseModel):
    """Manual moderation decision."""

    status: ModerationStatus = Field(..., description="approved or flagged")
    moderator: str = Field(default="Human Moderator", description="Who decided")

    @field_validator("status")
    @classmethod
    def status_is_terminal(cls, value: ModerationStatus) -> ModerationStatus:
        if value == ModerationStatus.PENDING:
            raise ValueError("status must be approved or flagged")
        return value


class ActivityEntry(BaseModel):
    time: datetime
    action: str


class User(BaseModel):
    id: str
    name: str
    role: UserRole
    avatar: str = "/placeholder.svg?height=40&width=40"


class UserCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    role: UserRole = UserRole.VIEWER
    avatar: str = "/placeholder.svg?height=40&width=40"


class UserUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    role: UserRole | None = None
    avatar: str | None = None


class StatsResponse(BaseModel):
    """Headline counts for the dashboard cards."""

    approved: int
    flagged: int
    pending: int
    total: int
    approved_pct: int
    flagged_pct: int
    pending_pct: int


class DistributionEntry(BaseModel):
    name: str
    value: int


class AnalyticsResponse(BaseModel):
    """Chart data derived from the moderated content."""

    categories: list[DistributionEntry] = Field(default_factory=list)
    confidence: list[DistributionEntry] = Field(default_factory=list)
    status: list[DistributionEntry] = Field(default_factory=list)
