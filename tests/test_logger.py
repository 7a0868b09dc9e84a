import json
import logging

from fedavg.utils.logger import (
    JSONFormatter,
    configure_logging,
    get_logger,
    log_event,
    setup_logger,
)


def test_json_formatter_includes_structured_fields():
    record = logging.LogRecord("fedavg.test", logging.INFO, __file__, 1, "Event: x", None, None)
    record.component = "coordinator"
    record.event = "round_started"
    record.round_id = 3
    record.extra_fields = {"max_rounds": 10}

    data = json.loads(JSONFormatter().format(record))

    assert data["level"] == "INFO"
    assert data["component"] == "coordinator"
    assert data["event"] == "round_started"
    assert data["round_id"] == 3
    assert data["max_rounds"] == 10
    assert data["timestamp"].endswith("Z")


def test_log_event_writes_json_file(tmp_path):
    logger = setup_logger("logtest", log_dir=str(tmp_path), log_level="DEBUG")

    log_event(logger, "update_received", round_id=2, client_id=1,
              component="logtest", sample_count=120)
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "logtest.json.log").read_text().strip().splitlines()
    data = json.loads(lines[-1])

    assert data["event"] == "update_received"
    assert data["round_id"] == 2
    assert data["client_id"] == 1
    assert data["sample_count"] == 120


def test_setup_logger_does_not_duplicate_handlers():
    setup_logger("duptest")
    logger = setup_logger("duptest")

    assert len(logger.handlers) == 1


def test_get_logger_returns_child():
    logger = get_logger("childtest", "fedavg.module")

    assert logger.name == "fedavg.childtest.module"
    assert logging.getLogger("fedavg.childtest").handlers


def test_log_level_filters(caplog):
    logger = setup_logger("leveltest", log_level="WARNING")

    with caplog.at_level(logging.DEBUG):
        log_event(logger, "hidden", level="INFO")
        log_event(logger, "shown", level="WARNING")

    events = [getattr(r, "event", None) for r in caplog.records]
    assert events == ["shown"]


def test_component_taken_from_logger_name(caplog):
    logger = get_logger("coordinator", "fedavg.coordinator.service")

    with caplog.at_level(logging.INFO):
        log_event(logger, "round_started", round_id=1)

    assert logger.name == "fedavg.coordinator.service"
    record = caplog.records[-1]
    assert record.component == "coordinator"
    assert record.round_id == 1


def test_configure_logging_sets_every_component(tmp_path):
    configure_logging(str(tmp_path), "DEBUG", components=("cfg_a", "cfg_b"))

    for component in ("cfg_a", "cfg_b"):
        logger = logging.getLogger(f"fedavg.{component}")
        assert logger.level == logging.DEBUG
        assert (tmp_path / f"{component}.json.log").exists()
