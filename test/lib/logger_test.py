import io
import json
import logging
import sys
from typing import Iterator

import pytest
from _pytest.monkeypatch import MonkeyPatch

from tflib.logger import TRACE, JsonFormatter, setup_logger


@pytest.fixture
def restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    root_level = root.level
    yield
    root.handlers = handlers
    root.setLevel(root_level)
    logging.getLogger("tf").setLevel(logging.INFO)


def test_json_formatter() -> None:
    formatter = JsonFormatter({"level": "levelname", "message": "message"}, static_values={"process": "test"})
    record = logging.LogRecord("tf.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    assert json.loads(formatter.format(record)) == {"level": "INFO", "message": "hello world", "process": "test"}
    try:
        raise ValueError("boom")
    except ValueError:
        failed = logging.LogRecord("tf.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
    js = json.loads(JsonFormatter().format(failed))
    assert js["logger"] == "tf.test"
    assert "ValueError: boom" in js["exception"]


def test_trace_level() -> None:
    assert logging.getLevelName(TRACE) == "TRACE"
    assert hasattr(logging.getLogger("tf.test"), "trace")


def test_setup_logger(restore_logging: None, monkeypatch: MonkeyPatch) -> None:
    for name in ["TF_PROVIDER_LOG_TEXT", "TF_PROVIDER_TRACE", "TF_PROVIDER_VERBOSE", "TF_PROVIDER_QUIET"]:
        monkeypatch.delenv(name, raising=False)
    stream = io.StringIO()
    setup_logger("test", level="WARNING", stream=stream)
    assert logging.getLogger("tf").level == logging.WARNING
    logging.getLogger("tf.test").warning("written as json")
    assert json.loads(stream.getvalue())["message"] == "written as json"

    stream = io.StringIO()
    setup_logger("test", json_format=False, verbose=True, stream=stream)
    assert logging.getLogger("tf").level == logging.DEBUG
    assert len(logging.getLogger().handlers) == 1
    logging.getLogger("tf.test").debug("plain text")
    assert stream.getvalue().rstrip().endswith("|test|DEBUG|tf.test  plain text")

    monkeypatch.setenv("TF_PROVIDER_TRACE", "true")
    setup_logger("test", stream=io.StringIO())
    assert logging.getLogger("tf").level == TRACE
