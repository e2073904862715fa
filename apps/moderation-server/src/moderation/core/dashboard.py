"""In-memory moderation dashboard state.

The dashboard is the caller of the classification engine. It owns the
content records, the recent-activity log, the current moderation
configuration and the user list. Classification results are merged into
a ContentItem only once a classification has fully completed, so a
cancelled submission leaves no trace.
"""

import uuid
from collections import Counter as TallyCounter
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone

import structlog

from py_common.metrics import CONTENT_RECORDED
from py_common.schemas import (
    ActivityEntry,
    AnalyticsResponse,
    ClassificationResult,
    ContentItem,
    DistributionEntry,
    ModerationConfiguration,
    ModerationStatus,
    StatsResponse,
    StrategyKind,
    User,
    UserRole,
)
from moderation.core.circuit_breaker import ClassifierCircuit
from moderation.core.engine import ClassificationError
from moderation.core.strategies import ClassificationStrategy, ModelBackedStrategy, select_strategy

logger = structlog.get_logger()

HUMAN_MODERATOR = "Human Moderator"
FALLBACK_CATEGORIES = ["unknown"]
DEFAULT_AVATAR = "/placeholder.svg?height=40&width=40"

# (label, min inclusive, max exclusive)
CONFIDENCE_BUCKETS = [
    ("90-100%", 0.9, 1.0),
    ("80-90%", 0.8, 0.9),
    ("70-80%", 0.7, 0.8),
    ("60-70%", 0.6, 0.7),
    ("<60%", 0.0, 0.6),
]


class EmptyContentError(ValueError):
    """Raised when submitted content is empty or whitespace only."""


class ContentNotFoundError(LookupError):
    """Raised when a content id is unknown."""

    def __init__(self, content_id: str):
        self.content_id = content_id
        super().__init__(f"Content not found: {content_id}")


class UnknownStatusFilterError(ValueError):
    """Raised when a content list is filtered by an unknown status."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(
            f"Unknown status filter: {status!r} (expected all, "
            + ", ".join(s.value for s in ModerationStatus)
            + ")"
        )


class UserNotFoundError(LookupError):
    """Raised when a user id is unknown."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _percent(count: int, total: int) -> int:
    return round(count / max(total, 1) * 100)


class ModerationDashboard:
    """Content, activity, settings and users for one moderation dashboard."""

    def __init__(
        self,
        configuration: ModerationConfiguration,
        strategies: Mapping[StrategyKind, ClassificationStrategy],
        activity_limit: int = 10,
        automated_moderator: str = "AI System",
    ):
        self._configuration = configuration
        self._strategies = dict(strategies)
        self.activity_limit = activity_limit
        self.automated_moderator = automated_moderator

        self._content: list[ContentItem] = []
        self._activity: list[ActivityEntry] = []
        self._users: list[User] = []

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    def _log_activity(self, action: str) -> None:
        self._activity.insert(0, ActivityEntry(time=_now(), action=action))
        del self._activity[self.activity_limit:]

    @property
    def activity(self) -> list[ActivityEntry]:
        """Recent activity, newest first."""
        return list(self._activity)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def configuration(self) -> ModerationConfiguration:
        return self._configuration

    def update_configuration(self, configuration: ModerationConfiguration) -> ModerationConfiguration:
        self._configuration = configuration
        self._log_activity("Moderation settings updated")
        logger.info(
            "settings_updated",
            sensitivity_level=configuration.sensitivity_level.value,
            auto_moderation=configuration.auto_moderation,
            strategy=configuration.strategy.value,
        )
        return configuration

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    @property
    def classifier_circuit(self) -> ClassifierCircuit | None:
        """Circuit of the model-backed strategy, if one is registered."""
        strategy = self._strategies.get(StrategyKind.MODEL_BACKED)
        if isinstance(strategy, ModelBackedStrategy):
            return strategy.circuit
        return None

    async def classify(
        self,
        text: str,
        configuration: ModerationConfiguration | None = None,
    ) -> ClassificationResult:
        """Classify text without recording anything.

        Raises:
            ClassificationError: If the selected strategy fails.
        """
        if configuration is None:
            configuration = self._configuration
        strategy = select_strategy(configuration, self._strategies)
        return await strategy.analyze(text, configuration)

    async def submit(self, text: str, source: str = "Website") -> ContentItem:
        """Classify submitted text and record the outcome.

        A classification failure is recorded as pending with zero confidence
        so the submission is never dropped.

        Raises:
            EmptyContentError: If the text is empty or whitespace only.
        """
        if not text.strip():
            raise EmptyContentError("Content must not be empty")

        configuration = self._configuration
        fallback = False

        try:
            result = await self.classify(text, configuration)
            status = result.status
            confidence = result.confidence
            categories = list(result.categories)
        except ClassificationError as e:
            fallback = True
            logger.warning(
                "classification_failed",
                source=source,
                strategy=configuration.strategy.value,
                error=str(e),
            )
            status = ModerationStatus.PENDING
            confidence = 0.0
            categories = list(FALLBACK_CATEGORIES)

        moderated_by = None
        if configuration.auto_moderation and status != ModerationStatus.PENDING:
            moderated_by = self.automated_moderator

        item = ContentItem(
            id=str(uuid.uuid4()),
            content=text,
            timestamp=_now(),
            status=status,
            confidence=confidence,
            categories=categories,
            source=source,
            moderated_by=moderated_by,
        )

        self._content.insert(0, item)
        self._log_activity(f"New content {status.value} ({source})")
        CONTENT_RECORDED.labels(status=status.value, fallback=str(fallback).lower()).inc()

        logger.info(
            "content_classified",
            content_id=item.id,
            source=source,
            status=status.value,
            confidence=round(confidence, 3),
            categories=categories,
        )
        return item

    # ------------------------------------------------------------------
    # Content records
    # ------------------------------------------------------------------

    def list_content(
        self,
        status: ModerationStatus | str | None = None,
        search: str | None = None,
    ) -> list[ContentItem]:
        """Return content newest first, optionally filtered.

        ``status`` of None, "" or "all" disables the status filter. ``search``
        is a case-insensitive substring match on the content text.

        Raises:
            UnknownStatusFilterError: If ``status`` names no moderation status.
        """
        items = self._content

        if status and status != "all":
            try:
                wanted = ModerationStatus(status)
            except ValueError:
                raise UnknownStatusFilterError(str(status)) from None
            items = [item for item in items if item.status == wanted]

        if search:
            needle = search.lower()
            items = [item for item in items if needle in item.content.lower()]

        return list(items)

    def get_content(self, content_id: str) -> ContentItem:
        for item in self._content:
            if item.id == content_id:
                return item
        raise ContentNotFoundError(content_id)

    def update_status(
        self,
        content_id: str,
        status: ModerationStatus,
        moderator: str = HUMAN_MODERATOR,
    ) -> ContentItem:
        """Apply a manual moderation decision."""
        if status == ModerationStatus.PENDING:
            raise ValueError("Manual decisions must approve or flag content")

        for index, item in enumerate(self._content):
            if item.id == content_id:
                updated = item.model_copy(update={"status": status, "moderated_by": moderator})
                self._content[index] = updated
                self._log_activity(f"Content {status.value} by {moderator}")
                logger.info(
                    "content_status_updated",
                    content_id=content_id,
                    status=status.value,
                    moderator=moderator,
                )
                return updated

        raise ContentNotFoundError(content_id)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def list_users(self) -> list[User]:
        return list(self._users)

    def add_user(
        self,
        name: str,
        role: UserRole = UserRole.VIEWER,
        avatar: str = DEFAULT_AVATAR,
    ) -> User:
        user = User(id=str(uuid.uuid4()), name=name, role=role, avatar=avatar)
        self._users.append(user)
        self._log_activity(f"New user added: {user.name} ({user.role.value})")
        return user

    def update_user(self, user_id: str, **changes) -> User:
        changes = {key: value for key, value in changes.items() if value is not None}

        for index, user in enumerate(self._users):
            if user.id == user_id:
                updated = User.model_validate({**user.model_dump(), **changes})
                self._users[index] = updated
                self._log_activity(f"User updated: {user.name}")
                return updated

        raise UserNotFoundError(user_id)

    def delete_user(self, user_id: str) -> User:
        for index, user in enumerate(self._users):
            if user.id == user_id:
                del self._users[index]
                self._log_activity(f"User deleted: {user.name}")
                return user

        raise UserNotFoundError(user_id)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def stats(self) -> StatsResponse:
        tally = TallyCounter(item.status for item in self._content)
        total = len(self._content)
        approved = tally[ModerationStatus.APPROVED]
        flagged = tally[ModerationStatus.FLAGGED]
        pending = tally[ModerationStatus.PENDING]

        return StatsResponse(
            approved=approved,
            flagged=flagged,
            pending=pending,
            total=total,
            approved_pct=_percent(approved, total),
            flagged_pct=_percent(flagged, total),
            pending_pct=_percent(pending, total),
        )

    def analytics(self) -> AnalyticsResponse:
        # Counter keeps first-seen order, sorted() is stable for ties
        category_tally = TallyCounter(
            category for item in self._content for category in item.categories
        )
        categories = sorted(category_tally.items(), key=lambda entry: entry[1], reverse=True)

        confidence = []
        for label, low, high in CONFIDENCE_BUCKETS:
            count = sum(1 for item in self._content if low <= item.confidence < high)
            confidence.append(DistributionEntry(name=label, value=count))

        status_tally = TallyCounter(item.status for item in self._content)

        return AnalyticsResponse(
            categories=[DistributionEntry(name=name, value=value) for name, value in categories],
            confidence=confidence,
            status=[
                DistributionEntry(name=status.value, value=status_tally[status])
                for status in ModerationStatus
            ],
        )

    # ------------------------------------------------------------------
    # Demo data
    # ------------------------------------------------------------------

    def seed_demo_data(self) -> None:
        """Load the demo content, users and activity shown on first launch."""
        now = _now()
        hour = timedelta(hours=1)

        demo_content = [
            ("Great article about sustainable energy solutions!", 0, ModerationStatus.APPROVED,
             0.95, ["positive", "environment"], "Website", self.automated_moderator),
            ("This product is terrible and the company is a scam.", 1, ModerationStatus.FLAGGED,
             0.82, ["negative", "accusation"], "Social Media", self.automated_moderator),
            ("Check out this amazing deal on our new products.", 2, ModerationStatus.PENDING,
             0.65, ["promotional"], "Email", None),
            ("I hate this service, it never works properly!", 3, ModerationStatus.FLAGGED,
             0.78, ["negative", "complaint"], "Customer Review", self.automated_moderator),
            ("The new update includes several bug fixes and performance improvements.", 4,
             ModerationStatus.APPROVED, 0.92, ["neutral", "informational"], "Release Notes",
             self.automated_moderator),
        ]
        for content, hours_ago, status, confidence, categories, source, moderated_by in demo_content:
            self._content.append(
                ContentItem(
                    id=str(uuid.uuid4()),
                    content=content,
                    timestamp=now - hours_ago * hour,
                    status=status,
                    confidence=confidence,
                    categories=categories,
                    source=source,
                    moderated_by=moderated_by,
                )
            )

        for name, role in [
            ("Admin User", UserRole.ADMIN),
            ("Moderator 1", UserRole.MODERATOR),
            ("Viewer User", UserRole.VIEWER),
        ]:
            self._users.append(User(id=str(uuid.uuid4()), name=name, role=role, avatar=DEFAULT_AVATAR))

        self._activity = [
            ActivityEntry(time=now - timedelta(minutes=2), action="Content approved by AI"),
            ActivityEntry(time=now - timedelta(minutes=5), action="Settings updated by Admin"),
            ActivityEntry(time=now - timedelta(minutes=10), action="New user added: Moderator 1"),
        ][: self.activity_limit]
