import asyncio
import time
from typing import Callable, Dict, Iterable, Optional

from frontend.exposition import (
    INDEX_REQUESTS,
    PREDICT_REQUESTS,
    PREDICTION_LATENCY,
    UI_REQUEST_DURATION,
    UI_REQUESTS,
    ExpositionRenderer,
)
from frontend.logging_utils import get_logger
from frontend.series import UI_BUCKETS, CounterStore, LabelKey, LatencyAccumulator
from frontend.sessions import ACTIVE_TTL_SECONDS, KNOWN_PAGES, ActiveSessionTracker

logger = get_logger(__name__)

INDEX_REQUESTS_KEY = LabelKey(INDEX_REQUESTS)
PREDICT_REQUESTS_KEY = LabelKey(PREDICT_REQUESTS)
PREDICTION_LATENCY_KEY = LabelKey(PREDICTION_LATENCY)
UNKNOWN_LABEL = "unknown"


def _label_value(value: object) -> str:
    """Missing or blank label values collapse into one "unknown" series."""
    if value is None:
        return UNKNOWN_LABEL
    text = str(value).strip()
    return text or UNKNOWN_LABEL


class MetricsRegistry:
    """
    Entry points the request handlers use to record and export metrics.

    None of the record methods raise: bad label values and durations are
    normalized so that collecting metrics can never fail a request.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        ttl_seconds: float = ACTIVE_TTL_SECONDS,
        known_pages: Iterable[str] = KNOWN_PAGES,
        buckets: Iterable[float] = UI_BUCKETS,
    ) -> None:
        self.counters = CounterStore()
        self.ui_latency = LatencyAccumulator(buckets)
        self.prediction_latency = LatencyAccumulator(())
        self.sessions = ActiveSessionTracker(ttl_seconds, known_pages, clock)

        self.counters.register(INDEX_REQUESTS_KEY)
        self.counters.register(PREDICT_REQUESTS_KEY)
        self.prediction_latency.register(PREDICTION_LATENCY_KEY)

    def record_ui_request(self, endpoint: Optional[str], method: Optional[str], status: object, duration_seconds: object) -> None:
        labels = {
            "endpoint": _label_value(endpoint),
            "method": _label_value(method).upper(),
            "status": _label_value(status),
        }
        self.counters.increment(LabelKey.of(UI_REQUESTS, **labels))
        self.ui_latency.observe(LabelKey.of(UI_REQUEST_DURATION, **labels), duration_seconds)

    def record_index_view(self) -> None:
        self.counters.increment(INDEX_REQUESTS_KEY)

    def record_predict_call(self) -> None:
        self.counters.increment(PREDICT_REQUESTS_KEY)

    def record_prediction_latency(self, duration_seconds: object) -> None:
        self.prediction_latency.observe(PREDICTION_LATENCY_KEY, duration_seconds)

    def session_enter(self, page: Optional[str], session_id: str) -> None:
        self.sessions.enter(page, session_id)

    def session_ping(self, page: Optional[str], session_id: str) -> None:
        self.sessions.ping(page, session_id)

    def session_leave(self, page: Optional[str], session_id: str) -> None:
        self.sessions.leave(page, session_id)

    def sweep_sessions(self, now: Optional[float] = None) -> Dict[str, int]:
        return self.sessions.sweep(now)

    def render_exposition(self) -> str:
        return ExpositionRenderer().render(self)


metrics = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    return metrics


async def sweep_sessions_periodically(registry: MetricsRegistry, interval: float) -> None:
    """Expire silent sessions between scrapes. Runs until cancelled."""
    while True:
        await asyncio.sleep(interval)
        active = registry.sweep_sessions()
        logger.debug(f"periodic session sweep: {active}")
