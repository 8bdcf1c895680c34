# src/makecommand/logging_setup.py

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

# HTTP adapters log every failed round-trip at INFO. The view-model already turns those
# failures into notices, so on the console they would show up twice.
_HTTP_ADAPTER_LOGGERS = ("makecommand.backend.", "makecommand.google.tasks_client")

_SECRET_PATTERNS = (
    re.compile(r"(access_token=)[^&\s#]+"),
    re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+"),
)


def redact_secrets(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1***", text)
    return text


class _RedactSecretsFilter(logging.Filter):
    """OAuth callback URLs and auth headers must never reach a log sink verbatim."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact_secrets(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable:
    - app logs pass, except HTTP adapter chatter below WARNING (it goes to the file only)
    - third-party loggers and captured warnings only from ERROR up
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith(_HTTP_ADAPTER_LOGGERS):
            return record.levelno >= logging.WARNING

        if name.startswith("makecommand."):
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/makecommand",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Console handler (filtered, for the REPL) + file handler (everything, for debugging).

    Call once, before the first log line.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    redact = _RedactSecretsFilter()

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(redact)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_dir / "makecommand.log"), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    fh.addFilter(redact)
    root.addHandler(fh)

    logging.captureWarnings(True)

    # httpx logs every request URL at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
