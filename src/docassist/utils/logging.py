"""Logging setup for the docassist command line host.

Records go to a rotating ``docassist.log`` file and, in debug mode, to the
console as well. AI endpoint errors and Google API bodies end up in log
messages, so every handler carries a filter that masks credentials before a
record is written.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
from pathlib import Path

__all__ = ["SecretMaskingFilter", "mask_secrets", "setup_logging"]

LOG_FILE_NAME = "docassist.log"
_DEFAULT_LOG_DIR = Path.home() / ".docassist" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+"),
    re.compile(r"()\bsk-[A-Za-z0-9_-]{6,}"),
)
_MASK = "***"

_active_path: Path | None = None


class SecretMaskingFilter(logging.Filter):
    """Replace bearer tokens and ``sk-`` style API keys with ``***``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def mask_secrets(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda match: f"{match.group(1)}{_MASK}", text)
    return text


def setup_logging(
    debug: bool = False,
    *,
    log_dir: Path | str | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install the file handler (plus a console handler when ``debug``) on the root logger.

    Repeated calls are no-ops unless ``force`` is set, which lets the host
    switch to debug output once settings have been loaded.
    """

    global _active_path
    if _active_path is not None and not force:
        return _active_path

    target_dir = Path(log_dir or os.environ.get("DOCASSIST_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILE_NAME
    level = logging.DEBUG if debug else logging.INFO

    formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", "%Y-%m-%d %H:%M:%S")
    masking = SecretMaskingFilter()
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    if debug:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(masking)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # Third-party clients log request lines at INFO; keep them at WARNING.
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(level, logging.WARNING))

    _active_path = log_path
    return log_path
