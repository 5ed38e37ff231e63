import json
import logging
import os
import sys
import tempfile

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MCP_LOG_FILE = os.path.join(
    tempfile.gettempdir(), "notion-mirror-mcp.log"
)


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter.

    One object per record with ts, level, logger and msg; exception text
    goes under "exc".
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
        return JsonFormatter(datefmt=DATE_FORMAT)
    fmt = "[%(asctime)s] [%(levelname)s] "
    if with_name:
        fmt += "%(name)s "
    return logging.Formatter(fmt + "%(message)s", datefmt=DATE_FORMAT)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """
    Configure logging for the CLI or the MCP server.

    Args:
        mode: "mcp" logs to a file (stdout carries the protocol), "cli"
            logs to stderr.
        debug: Force DEBUG level regardless of LOG_LEVEL.
        log_file: Log file path (overrides LOG_FILE). In CLI mode it adds
            a file handler next to stderr.
        debug_format: "text" or "json".

    Environment variables:
        LOG_LEVEL: DEBUG, INFO, WARNING or ERROR.
                   Default: WARNING for MCP mode, INFO for CLI mode.
        LOG_FILE: Log file for MCP mode.
                  Default: notion-mirror-mcp.log in the temp directory.
    """
    default_level = "WARNING" if mode == "mcp" else "INFO"
    env_level = os.getenv("LOG_LEVEL", default_level).upper()

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    if mode == "mcp":
        final_log_file = log_file or os.getenv("LOG_FILE", DEFAULT_MCP_LOG_FILE)
        logging.basicConfig(
            level=log_level,
            format="[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
            datefmt=DATE_FORMAT,
            filename=final_log_file,
            filemode="a",
        )
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_make_formatter(debug_format, False))
        handlers: list[logging.Handler] = [stderr_handler]

        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(_make_formatter(debug_format, True))
            handlers.append(file_handler)

        logging.basicConfig(level=log_level, handlers=handlers)

    # requests logs every connection through urllib3
    if log_level != logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
