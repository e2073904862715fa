"""Classification strategies behind a single async contract.

Both variants take ``(text, configuration)`` and return a
ClassificationResult or raise ClassificationError:

- RuleBasedStrategy: the local keyword engine, with an optional simulated
  processing delay.
- ModelBackedStrategy: an external classifier service reached over HTTP,
  protected by a circuit and retries.

The configuration's ``strategy`` field picks the variant for each call.
"""

import asyncio
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field

import httpx
import structlog
from prometheus_client import Counter, Histogram
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_fixed,
    retry_if_exception_type,
    RetryCallState,
)

from py_common.metrics import observe_classification
from py_common.schemas import (
    ClassificationResult,
    ModelPredictRequest,
    ModelPredictResponse,
    ModerationConfiguration,
    StrategyKind,
)
from moderation.config import Settings
from moderation.core.circuit_breaker import ClassifierCircuit
from moderation.core.engine import (
    MAX_CONFIDENCE,
    ClassificationError,
    RandomSource,
    classify,
    resolve_configuration,
)
from moderation.models.client import build_timeout, get_shared_client

logger = structlog.get_logger()


MODEL_CALL_LATENCY = Histogram(
    "moderation_model_call_latency_seconds",
    "Latency of successful external classifier calls",
    ["classifier_url"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 1.0, 2.5],
)

RETRY_COUNT = Counter(
    "moderation_model_call_retries_total",
    "Retried external classifier calls",
    ["classifier_url"],
)

UNCONFIGURED_URL = "unconfigured"


def _record_outcome(kind: StrategyKind, started: float, outcome: str) -> None:
    observe_classification(kind.value, outcome, time.perf_counter() - started)


def before_retry_log(retry_state: RetryCallState) -> None:
    """Log a failed attempt that is about to be retried."""
    if retry_state.outcome and retry_state.outcome.failed:
        classifier_url = retry_state.kwargs.get("classifier_url", UNCONFIGURED_URL)

        logger.warning(
            "model_call_retry",
            classifier_url=classifier_url,
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()),
        )
        RETRY_COUNT.labels(classifier_url=classifier_url).inc()


@dataclass
class RuleBasedStrategy:
    """Local keyword classification.

    ``rng`` fixes the confidence draw for deterministic runs. ``delay_seconds``
    simulates processing time; the sleep is cancellable and never changes
    the result.
    """

    rng: RandomSource | None = None
    delay_seconds: float = 0.0
    kind: StrategyKind = field(default=StrategyKind.RULE_BASED, init=False)

    async def analyze(
        self,
        text: str,
        config: ModerationConfiguration | Mapping | None,
    ) -> ClassificationResult:
        started = time.perf_counter()

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        try:
            result = classify(text, config, rng=self.rng)
        except ClassificationError:
            _record_outcome(self.kind, started, "error")
            raise

        _record_outcome(self.kind, started, result.status.value)
        return result


@dataclass
class ModelBackedStrategy:
    """Classification delegated to an external ``/predict`` service.

    Pass ``client`` to reuse an existing httpx client (its base URL is used
    as is); otherwise a pooled client for ``base_url`` is created on demand
    with this strategy's timeouts. Timeouts and connection errors are retried
    up to ``retry_max_attempts`` times when ``retry_enabled``; every failed
    call counts against ``circuit``.
    """

    base_url: str | None = None
    client: httpx.AsyncClient | None = None
    timeout_seconds: float = 2.0
    connect_timeout: float = 0.5
    retry_enabled: bool = True
    retry_max_attempts: int = 2
    retry_wait_seconds: float = 0.05
    circuit: ClassifierCircuit | None = None
    kind: StrategyKind = field(default=StrategyKind.MODEL_BACKED, init=False)

    def __post_init__(self):
        if self.circuit is None:
            self.circuit = ClassifierCircuit(classifier_url=self.classifier_url)

    @property
    def classifier_url(self) -> str:
        if self.client is not None:
            return str(self.client.base_url)
        return self.base_url or UNCONFIGURED_URL

    @property
    def attempts(self) -> int:
        return max(1, self.retry_max_attempts) if self.retry_enabled else 1

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is not None:
            return self.client
        timeout = build_timeout(self.timeout_seconds, self.connect_timeout)
        return await get_shared_client(self.base_url, timeout)

    async def analyze(
        self,
        text: str,
        config: ModerationConfiguration | Mapping | None,
    ) -> ClassificationResult:
        """Call the external classifier.

        Raises:
            ClassificationError: If no classifier is configured, its circuit
                is open, or the call fails after retries.
        """
        started = time.perf_counter()
        try:
            result = await self._predict(text, resolve_configuration(config))
        except ClassificationError:
            _record_outcome(self.kind, started, "error")
            raise

        _record_outcome(self.kind, started, result.status.value)
        return result

    async def _post_predict(self, payload: dict, classifier_url: str) -> ModelPredictResponse:
        start_time = time.perf_counter()

        client = await self._get_client()
        response = await client.post("/predict", json=payload)
        response.raise_for_status()

        MODEL_CALL_LATENCY.labels(classifier_url=classifier_url).observe(
            time.perf_counter() - start_time
        )
        return ModelPredictResponse.model_validate(response.json())

    async def _predict(
        self,
        text: str,
        configuration: ModerationConfiguration,
    ) -> ClassificationResult:
        if self.client is None and not self.base_url:
            raise ClassificationError("Model-backed strategy has no classifier URL configured")

        self.circuit.ensure_closed()
        url = self.classifier_url

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.retry_wait_seconds),
            retry=retry_if_exception_type((
                httpx.TimeoutException,
                httpx.ConnectError,
            )),
            before_sleep=before_retry_log,
            reraise=True,
        )

        try:
            request = ModelPredictRequest(
                text=text,
                request_id=str(uuid.uuid4()),
                sensitivity_level=configuration.sensitivity_level,
                auto_moderation=configuration.auto_moderation,
            )
            prediction = await retrying(
                self._post_predict,
                request.model_dump(mode="json"),
                classifier_url=url,
            )
        except httpx.TimeoutException as e:
            self.circuit.record_failure()
            raise ClassificationError(
                f"Timeout calling {url} (after {self.attempts} attempts)"
            ) from e
        except httpx.ConnectError as e:
            self.circuit.record_failure()
            raise ClassificationError(
                f"Connection error calling {url} (after {self.attempts} attempts)"
            ) from e
        except httpx.HTTPStatusError as e:
            self.circuit.record_failure()
            raise ClassificationError(
                f"HTTP error from {url}: {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            # ValueError covers request/response validation and malformed JSON
            self.circuit.record_failure()
            raise ClassificationError(f"Error calling {url}: {e}") from e

        self.circuit.record_success()

        return ClassificationResult(
            status=prediction.status,
            confidence=min(prediction.confidence, MAX_CONFIDENCE),
            categories=prediction.categories,
        )


ClassificationStrategy = RuleBasedStrategy | ModelBackedStrategy


def build_strategies(
    settings: Settings,
    rng: RandomSource | None = None,
) -> dict[StrategyKind, ClassificationStrategy]:
    """Build one instance of each strategy variant from application settings."""
    classifier_url = settings.CLASSIFIER_MODEL_URL
    return {
        StrategyKind.RULE_BASED: RuleBasedStrategy(
            rng=rng,
            delay_seconds=settings.classification_delay_seconds,
        ),
        StrategyKind.MODEL_BACKED: ModelBackedStrategy(
            base_url=classifier_url,
            timeout_seconds=settings.MODEL_TIMEOUT_SECONDS,
            connect_timeout=settings.MODEL_CONNECT_TIMEOUT,
            retry_enabled=settings.RETRY_ENABLED,
            retry_max_attempts=settings.RETRY_MAX_ATTEMPTS,
            retry_wait_seconds=settings.RETRY_WAIT_MS / 1000,
            circuit=ClassifierCircuit(
                classifier_url=classifier_url or UNCONFIGURED_URL,
                failure_threshold=settings.CB_FAILURE_THRESHOLD,
                cooldown_seconds=settings.CB_RECOVERY_TIMEOUT,
                trial_successes=settings.CB_SUCCESS_THRESHOLD,
            ),
        ),
    }


def select_strategy(
    config: ModerationConfiguration,
    strategies: Mapping[StrategyKind, ClassificationStrategy],
) -> ClassificationStrategy:
    """Return the strategy the configuration asks for."""
    strategy = strategies.get(config.strategy)
    if strategy is None:
        raise ClassificationError(f"No strategy registered for {config.strategy.value}")
    return strategy
