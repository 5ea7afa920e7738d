import io
import json
import logging
from datetime import datetime

import pytest

from huntr.logsetup import (
    JsonFormatter,
    setup_logger,
    setup_logger_with_file,
    touch_heartbeat,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def last_entry(stream):
    return json.loads(stream.getvalue().splitlines()[-1])


def parse_time(text):
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def test_setup_logger_writes_json_with_service():
    stream = io.StringIO()
    setup_logger("web", "info", stream)
    logging.getLogger("huntr.test").info("hello", extra={"count": 3})
    entry = last_entry(stream)
    assert entry["msg"] == "hello"
    assert entry["service"] == "web"
    assert entry["count"] == 3
    assert entry["level"] == "INFO"


def test_time_field_is_iso_timestamp():
    stream = io.StringIO()
    setup_logger("web", "info", stream)
    before = datetime.now().astimezone()
    logging.getLogger("huntr.test").info("tick")
    stamp = parse_time(last_entry(stream)["time"])
    assert abs((stamp - before).total_seconds()) < 5


def test_default_level_suppresses_debug():
    stream = io.StringIO()
    setup_logger("scraper", "", stream)
    logging.getLogger("huntr.test").debug("hidden")
    assert stream.getvalue() == ""


def test_debug_level_is_case_insensitive():
    stream = io.StringIO()
    setup_logger("scraper", "DEBUG", stream)
    logging.getLogger("huntr.test").debug("shown")
    assert last_entry(stream)["msg"] == "shown"


def test_warn_level_filters_info():
    stream = io.StringIO()
    setup_logger("processor", "warn", stream)
    log = logging.getLogger("huntr.test")
    log.info("quiet")
    log.warning("loud")
    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["level"] == "WARN"


def test_error_level_filters_warning():
    stream = io.StringIO()
    setup_logger("processor", "error", stream)
    log = logging.getLogger("huntr.test")
    log.warning("quiet")
    log.error("loud")
    lines = stream.getvalue().splitlines()
    assert [json.loads(line)["msg"] for line in lines] == ["loud"]


def test_repeated_setup_replaces_previous_handler():
    first, second = io.StringIO(), io.StringIO()
    setup_logger("web", "info", first)
    setup_logger("web", "info", second)
    logging.getLogger("huntr.test").info("once")
    assert first.getvalue() == ""
    assert len(second.getvalue().splitlines()) == 1


def test_formatter_formats_record_arguments():
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom %s", ("now",), None)
    entry = json.loads(JsonFormatter("svc").format(record))
    assert entry["msg"] == "boom now"
    assert entry["level"] == "ERROR"
    assert entry["service"] == "svc"


def test_setup_logger_with_file_writes_to_file(tmp_path, capsys):
    log_path = tmp_path / "logs" / "processor.log"
    logger, handler = setup_logger_with_file("processor", "info", log_path)
    logging.getLogger("huntr.test").info("to file")
    handler.close()
    entries = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert entries[-1]["msg"] == "to file"
    assert entries[-1]["service"] == "processor"
    assert handler.baseFilename == str(log_path)
    assert "to file" in capsys.readouterr().out
    assert logger is logging.getLogger()


def test_setup_logger_with_file_appends(tmp_path):
    log_path = tmp_path / "app.log"
    log_path.write_text("existing\n", encoding="utf-8")
    _, handler = setup_logger_with_file("web", "info", log_path)
    logging.getLogger("huntr.test").info("more")
    handler.close()
    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "existing"
    assert json.loads(lines[-1])["msg"] == "more"


def test_setup_logger_with_empty_path_has_no_file():
    logger, handler = setup_logger_with_file("web", "info", "")
    assert handler is None
    assert logger is logging.getLogger()


def test_setup_logger_with_unopenable_path_falls_back(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    _, handler = setup_logger_with_file("web", "info", blocker / "sub" / "app.log")
    assert handler is None


def test_touch_heartbeat_writes_current_time(tmp_path):
    before = datetime.now().astimezone().replace(microsecond=0)
    path = touch_heartbeat("processor", tmp_path / "state")
    after = datetime.now().astimezone()
    assert path.name == "processor_heartbeat"
    stamp = parse_time(path.read_text(encoding="utf-8"))
    assert before <= stamp <= after


def test_touch_heartbeat_ignores_write_failures(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    path = touch_heartbeat("scraper", blocker / "state")
    assert not path.exists()