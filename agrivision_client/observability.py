import json
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from agrivision_client.config import Settings, settings

_logger = logging.getLogger("agrivision.client")


@dataclass(frozen=True)
class DiagnosticEvent:
    component: str
    stage: str
    outcome: str
    request_id: int | None = None
    detail: dict[str, Any] = field(default_factory=dict)


Observer = Callable[[DiagnosticEvent], None]


def null_observer(event: DiagnosticEvent) -> None:  # noqa: ARG001
    return None


def emit(observer: Observer, event: DiagnosticEvent) -> None:
    try:
        observer(event)
    except Exception:  # noqa: BLE001
        _logger.exception("observer_failed", extra={"component": event.component, "stage": event.stage})


def fanout(*observers: Observer) -> Observer:
    def _observer(event: DiagnosticEvent) -> None:
        for observer in observers:
            emit(observer, event)

    return _observer


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[DiagnosticEvent] = []

    def __call__(self, event: DiagnosticEvent) -> None:
        self.events.append(event)

    def stages(self, component: str | None = None) -> list[str]:
        return [
            f"{event.component}.{event.stage}:{event.outcome}"
            for event in self.events
            if component is None or event.component == component
        ]


class LoggingObserver:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _logger

    def __call__(self, event: DiagnosticEvent) -> None:
        level = logging.WARNING if event.outcome in {"error", "timeout"} else logging.INFO
        extra = {
            "component": event.component,
            "stage": event.stage,
            "outcome": event.outcome,
            "request_id": event.request_id,
        }
        if event.detail:
            extra["detail"] = event.detail
        self._logger.log(level, "diagnostic_event", extra=extra)


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "component", "stage", "outcome", "detail"):
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(config: Settings = settings) -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    if config.log_json:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    root.setLevel(level)
    root.addHandler(handler)


@dataclass
class CallMetrics:
    calls_total: int = 0
    results_by_kind: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    events_by_stage: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    call_latency_ms_sum: float = 0.0
    _lock: Lock = field(default_factory=Lock)

    def record_event(self, event: DiagnosticEvent) -> None:
        with self._lock:
            self.events_by_stage[f"{event.component}.{event.stage}.{event.outcome}"] += 1
            if event.component == "client" and event.stage == "result":
                self.calls_total += 1
                self.results_by_kind[str(event.detail.get("kind", "ok"))] += 1
                self.call_latency_ms_sum += float(event.detail.get("latency_ms", 0.0))

    def render_prometheus(self) -> str:
        with self._lock:
            lines = [
                "# TYPE diagnosis_calls_total counter",
                f"diagnosis_calls_total {self.calls_total}",
                "# TYPE diagnosis_call_latency_ms_sum counter",
                f"diagnosis_call_latency_ms_sum {self.call_latency_ms_sum}",
                "# TYPE diagnosis_results_total counter",
            ]
            for kind, count in sorted(self.results_by_kind.items()):
                lines.append(f'diagnosis_results_total{{kind="{kind}"}} {count}')
            lines.append("# TYPE diagnosis_events_total counter")
            for stage, count in sorted(self.events_by_stage.items()):
                lines.append(f'diagnosis_events_total{{stage="{stage}"}} {count}')
            return "\n".join(lines) + "\n"


class MetricsObserver:
    def __init__(self, metrics: CallMetrics) -> None:
        self.metrics = metrics

    def __call__(self, event: DiagnosticEvent) -> None:
        self.metrics.record_event(event)


call_metrics = CallMetrics()


def default_observer(config: Settings = settings) -> Observer:
    if config.enable_metrics:
        return fanout(LoggingObserver(), MetricsObserver(call_metrics))
    return LoggingObserver()
