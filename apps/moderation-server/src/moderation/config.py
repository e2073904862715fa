"""Configuration settings for the Moderation Server.

Uses pydantic-settings for environment variable management with validation.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

from py_common.schemas import ModerationConfiguration, SensitivityLevel


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server configuration
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8000, description="Server port")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # Simulated processing latency (keeps UI spinners visible)
    CLASSIFICATION_DELAY_ENABLED: bool = Field(
        default=False,
        description="Enable simulated classification delay",
    )
    CLASSIFICATION_DELAY_MS: int = Field(
        default=500,
        ge=0,
        description="Simulated classification delay in milliseconds",
    )

    # External classifier for the model-backed strategy
    CLASSIFIER_MODEL_URL: str | None = Field(
        default=None,
        description="Base URL of an external classifier service (unset disables model_backed)",
    )
    MODEL_TIMEOUT_SECONDS: float = Field(
        default=2.0,
        description="Timeout for classifier calls in seconds",
    )
    MODEL_CONNECT_TIMEOUT: float = Field(
        default=0.5,
        description="Connection timeout for classifier calls",
    )

    # Retry configuration
    RETRY_ENABLED: bool = Field(default=True, description="Retry classifier calls on transport errors")
    RETRY_MAX_ATTEMPTS: int = Field(default=2, ge=1, description="Attempts per classifier call")
    RETRY_WAIT_MS: int = Field(default=50, ge=0, description="Wait between attempts in milliseconds")

    # Circuit breaker configuration
    CB_FAILURE_THRESHOLD: int = Field(
        default=5,
        description="Number of failures before circuit opens",
    )
    CB_RECOVERY_TIMEOUT: float = Field(
        default=30.0,
        description="Seconds before attempting recovery (half-open)",
    )
    CB_SUCCESS_THRESHOLD: int = Field(
        default=3,
        description="Successes needed to close circuit from half-open",
    )

    # Dashboard behaviour
    ACTIVITY_LOG_LIMIT: int = Field(default=10, ge=1, description="Activity entries kept")
    AUTOMATED_MODERATOR: str = Field(
        default="AI System",
        description="Attribution for decisions applied without human review",
    )
    SEED_DEMO_DATA: bool = Field(default=True, description="Load demo content and users at startup")

    # Starting moderation configuration
    DEFAULT_SENSITIVITY_LEVEL: SensitivityLevel = Field(default=SensitivityLevel.MEDIUM)
    DEFAULT_AUTO_MODERATION: bool = Field(default=True)

    @property
    def classification_delay_seconds(self) -> float:
        """Delay applied by the rule-based strategy, 0 when disabled."""
        if not self.CLASSIFICATION_DELAY_ENABLED:
            return 0.0
        return self.CLASSIFICATION_DELAY_MS / 1000

    def default_configuration(self) -> ModerationConfiguration:
        """Return the moderation configuration the dashboard starts with."""
        return ModerationConfiguration(
            sensitivity_level=self.DEFAULT_SENSITIVITY_LEVEL,
            auto_moderation=self.DEFAULT_AUTO_MODERATION,
            categories={
                "hate": True,
                "violence": True,
                "harassment": True,
                "spam": True,
                "misinformation": True,
                "adult": True,
                "profanity": True,
            },
            sources={
                "website": True,
                "socialMedia": True,
                "email": True,
                "customerReview": True,
                "forum": True,
            },
            ai_model="advanced",
        )


# Global settings instance
settings = Settings()
