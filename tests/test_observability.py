import json
import logging

from agrivision_client.config import Settings
from agrivision_client.observability import (
    DiagnosticEvent,
    JsonLogFormatter,
    LoggingObserver,
    RecordingObserver,
    configure_logging,
    default_observer,
    fanout,
)


def test_json_formatter_includes_event_fields() -> None:
    record = logging.LogRecord("agrivision.client", logging.INFO, __file__, 1, "diagnostic_event", None, None)
    record.component = "polling"
    record.stage = "progress"
    record.outcome = "heuristic_match"
    record.request_id = 42
    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["message"] == "diagnostic_event"
    assert payload["component"] == "polling"
    assert payload["stage"] == "progress"
    assert payload["outcome"] == "heuristic_match"
    assert payload["request_id"] == 42


def test_logging_observer_uses_warning_for_errors(caplog) -> None:
    observer = LoggingObserver()
    with caplog.at_level(logging.INFO, logger="agrivision.client"):
        observer(DiagnosticEvent(component="client", stage="result", outcome="ok", request_id=1))
        observer(DiagnosticEvent(component="streaming", stage="request", outcome="error", detail={"kind": "ConnectionError"}))

    levels = [record.levelno for record in caplog.records]
    assert levels == [logging.INFO, logging.WARNING]
    assert caplog.records[1].component == "streaming"
    assert caplog.records[1].detail == {"kind": "ConnectionError"}


def test_fanout_isolates_failing_observers() -> None:
    recorder = RecordingObserver()

    def broken(event: DiagnosticEvent) -> None:
        raise RuntimeError("down")

    observer = fanout(broken, recorder)
    observer(DiagnosticEvent(component="client", stage="parse", outcome="ok"))

    assert recorder.stages() == ["client.parse:ok"]


def test_default_observer_without_metrics_is_logging_only() -> None:
    observer = default_observer(Settings(enable_metrics=False))
    assert isinstance(observer, LoggingObserver)


def test_configure_logging_installs_json_handler_once(monkeypatch) -> None:
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    previous_level = root.level
    try:
        configure_logging(Settings(log_level="debug", log_json=True))
        configure_logging(Settings(log_level="debug", log_json=True))

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonLogFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(previous_level)
