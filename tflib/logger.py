import json
import logging
import os
import sys
from logging import DEBUG, ERROR, INFO, WARNING, Formatter, LogRecord, StreamHandler, getLogger
from typing import Any, Dict, Optional, TextIO

TRACE = DEBUG - 5

# log field name -> LogRecord attribute
DefaultJsonFields: Dict[str, str] = {
    "timestamp": "asctime",
    "level": "levelname",
    "logger": "name",
    "message": "message",
    "pid": "process",
}

getLogger().setLevel(ERROR)
getLogger("tf").setLevel(INFO)


class JsonFormatter(Formatter):
    """
    Renders every record as one json object per line.
    Exceptions and stack information are added as extra fields if available.
    """

    def __init__(self, fields: Optional[Dict[str, str]] = None, static_values: Optional[Dict[str, str]] = None):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")
        self.fields = fields or DefaultJsonFields
        self.static_values = static_values or {}

    def usesTime(self) -> bool:  # noqa: N802
        return "asctime" in self.fields.values()

    def format(self, record: LogRecord) -> str:
        record.message = record.getMessage()
        if self.usesTime():
            record.asctime = self.formatTime(record, self.datefmt)
        js: Dict[str, Any] = {name: getattr(record, attr, None) for name, attr in self.fields.items()}
        js.update(self.static_values)
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            js["exception"] = record.exc_text
        if record.stack_info:
            js["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(js, default=str)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "false").lower() == "true"


def setup_logger(
    proc: str,
    *,
    verbose: bool = False,
    quiet: bool = False,
    level: Optional[str] = None,
    json_format: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure the root logger with a single handler.
    The host reads results from stdout, so all log output goes to stderr unless another stream is given.

    Environment overrides:
    TF_PROVIDER_LOG_TEXT=true: plain text instead of json.
    TF_PROVIDER_TRACE / TF_PROVIDER_VERBOSE / TF_PROVIDER_QUIET=true: trace, debug or critical level.
    """
    handler = StreamHandler(stream or sys.stderr)
    if json_format and not _env_flag("TF_PROVIDER_LOG_TEXT"):
        handler.setFormatter(JsonFormatter(static_values={"process": proc}))
    else:
        handler.setFormatter(Formatter(f"%(asctime)s|{proc}|%(levelname)5s|%(name)s  %(message)s", "%y-%m-%d %H:%M:%S"))

    root = getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)

    tf_log = getLogger("tf")
    if level:
        tf_log.setLevel(level)
    elif _env_flag("TF_PROVIDER_TRACE"):
        tf_log.setLevel(TRACE)
    elif verbose or _env_flag("TF_PROVIDER_VERBOSE"):
        tf_log.setLevel(DEBUG)
    elif quiet or _env_flag("TF_PROVIDER_QUIET"):
        root.setLevel(WARNING)
        tf_log.setLevel(logging.CRITICAL)


def add_logging_level(level_name: str, level_num: int) -> None:
    """
    Register a level with the logging module and a method with the lower case name on every logger.
    Does nothing, if the level is already known.
    """
    method_name = level_name.lower()
    if hasattr(logging, level_name) or hasattr(logging.getLoggerClass(), method_name):
        return

    def log_for_level(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(level_num):
            self._log(level_num, message, args, **kwargs)

    logging.addLevelName(level_num, level_name)
    setattr(logging, level_name, level_num)
    setattr(logging.getLoggerClass(), method_name, log_for_level)


add_logging_level("TRACE", TRACE)

log = getLogger("tf")
