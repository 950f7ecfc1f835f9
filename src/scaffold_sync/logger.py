import json
import logging
import os
import sys

_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured debug output.

    Produces one JSON object per log record with fields: ts, level, logger, msg.
    Exception info is included as an "exc" field when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _make_formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    fmt = "[%(asctime)s] [%(levelname)s] "
    if with_name:
        fmt += "%(name)s "
    return logging.Formatter(fmt + "%(message)s", datefmt=_DATEFMT)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure logging for a sync run.

    Args:
        mode: "cli" logs to stderr (and optionally a file), "file" logs
              only to a file so command output stays clean.
        debug: If True, overrides LOG_LEVEL to DEBUG.
        log_file: Log file path (overrides LOG_FILE env var).
        debug_format: "text" (default) or "json" for structured output.
        level: Level used when LOG_LEVEL is unset (e.g. from the config file).

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Default: WARNING for file mode, INFO for CLI mode.
        LOG_FILE: Log file path for file mode.
                  Default: /tmp/scaffold-sync.log
    """
    default_level = "WARNING" if mode == "file" else "INFO"
    env_level = os.getenv("LOG_LEVEL", level or default_level).upper()

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    if mode == "file":
        final_log_file = log_file or os.getenv(
            "LOG_FILE", "/tmp/scaffold-sync.log"
        )
        logging.basicConfig(
            level=log_level,
            format="[%(asctime)s] [%(levelname)s] %(message)s",
            datefmt=_DATEFMT,
            filename=final_log_file,
            filemode="a",
        )
        return

    handlers: list[logging.Handler] = []
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(_make_formatter(debug_format, False))
    handlers.append(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(_make_formatter(debug_format, True))
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
    )
