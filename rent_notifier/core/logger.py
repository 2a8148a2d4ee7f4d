"""Logging setup for the rent notifier.

Every module obtains its logger through get_logger(). The API lifespan and
the command-line entry points call setup_logging() once, which installs a
stdout handler plus two rotating files under LOG_DIR:

    rent_notifier.log        everything at DEBUG and above
    rent_notifier.error.log  ERROR and above only

Delivery code formats its messages with log_context() so that a record id,
recipient and notification kind read the same in every log line.

Author: Odiseo
Created: 2025-10-18
Version: 2.1.0
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from rent_notifier.config.settings import NotifierConfig

DEFAULT_LOG_DIR = Path(__file__).parent.parent / "logs"

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

MAIN_LOG_FILE = "rent_notifier.log"
ERROR_LOG_FILE = "rent_notifier.error.log"
ERROR_LOG_MAX_MB = 5
ERROR_LOG_BACKUPS = 3

# Delivery and storage are chatty at DEBUG; rule evaluation and rendering are not
PACKAGE_LEVELS = {
    "rent_notifier.scheduler": logging.DEBUG,
    "rent_notifier.delivery": logging.DEBUG,
    "rent_notifier.clients": logging.DEBUG,
    "rent_notifier.database": logging.DEBUG,
    "rent_notifier.rules": logging.INFO,
    "rent_notifier.templates": logging.INFO,
    "rent_notifier.config": logging.INFO,
}

_ANSI_RESET = "\033[0m"
_ANSI = {
    "bold": "\033[1m",
    "dim": "\033[2m",
    "ok": "\033[32m",
    "value": "\033[36m",
    "warn": "\033[33m",
    "section": "\033[35m",
}


def _level(name: str | None, default: int) -> int:
    if not name:
        return default
    return getattr(logging, name.upper(), default)


def _paint(text: str, style: str) -> str:
    return f"{_ANSI[style]}{text}{_ANSI_RESET}"


def mask_secret(secret: str | None) -> str:
    """Hide a secret, keeping its first and last character visible."""
    if not secret:
        return "(not set)"
    if len(secret) <= 2:
        return "***"
    return secret[0] + "*" * (len(secret) - 2) + secret[-1]


def _mask_database_url(db_url: str) -> str:
    # Only the password between "user:" and "@" is hidden
    credentials, sep, location = db_url.rpartition("@")
    if not sep:
        return db_url
    scheme, _, user_and_password = credentials.partition("//")
    user, colon, _ = user_and_password.partition(":")
    if not colon:
        return db_url
    return f"{scheme}//{user}:***@{location}"


def _summary_sections(settings: "NotifierConfig") -> Iterable[tuple[str, list[tuple[str, str, bool]]]]:
    """Yield (title, rows) where each row is (label, value, needs_attention)."""
    yield "Service", [
        ("Listen address", f"{settings.API_HOST}:{settings.API_PORT}", False),
        ("API key", mask_secret(settings.API_KEY), not settings.API_KEY),
        ("Cron secret", mask_secret(settings.CRON_SECRET), not settings.CRON_SECRET),
        ("Timezone", settings.TIMEZONE, False),
    ]

    storage_rows = [("Backend", settings.STORAGE_BACKEND, settings.STORAGE_BACKEND == "memory")]
    if settings.STORAGE_BACKEND == "postgres":
        url = _mask_database_url(settings.DATABASE_URL)
        if len(url) > 45:
            url = url[:45] + "..."
        storage_rows += [("Database URL", url, False), ("Schema", settings.SCHEMA_NAME, False)]
    yield "Storage", storage_rows

    yield "Delivery", [
        ("SMTP timeout", f"{settings.SMTP_TIMEOUT}s", False),
        ("Currency symbol", settings.CURRENCY_SYMBOL, False),
        ("App base URL", settings.APP_BASE_URL, False),
    ]

    yield "Logging", [
        ("Level", settings.LOG_LEVEL, False),
        (
            "Files",
            f"{settings.LOG_DIR} ({settings.LOG_MAX_SIZE_MB} MB x {settings.LOG_BACKUP_COUNT})"
            if settings.LOG_TO_FILE
            else "disabled",
            False,
        ),
    ]


def print_config_summary(settings: "NotifierConfig") -> None:
    """Print the effective configuration to stdout with secrets masked."""
    rule = _paint("=" * 64, "dim")
    print(rule)
    print(_paint(f" {settings.SERVICE_NAME} v{settings.SERVICE_VERSION}", "bold"))
    print(rule)

    for title, rows in _summary_sections(settings):
        print(_paint(f" [{title}]", "section"))
        for label, value, needs_attention in rows:
            print(f"   {label:<18} {_paint(value, 'warn' if needs_attention else 'value')}")

    print(rule)


def _rotating_handler(path: Path, level: int, max_mb: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=TIMESTAMP_FORMAT))
    return handler


def setup_logging(
    log_dir: Path | str | None = None,
    log_level: str = "INFO",
    console_level: str = "INFO",
    enable_file: bool = True,
    max_size_mb: int = 10,
    backup_count: int = 5,
    settings: Optional["NotifierConfig"] = None,
) -> None:
    """Install console and rotating file handlers on the root logger.

    Calling it again replaces the handlers from the previous call, so the
    API and the CLIs can each configure logging without duplicating output.

    Args:
        log_dir: Directory for log files. Defaults to rent_notifier/logs.
        log_level: Root logger level.
        console_level: Level for the stdout handler.
        enable_file: Write the main and error log files when True.
        max_size_mb: Rotation size of the main log file.
        backup_count: Rotated main log files to keep.
        settings: When given, the configuration summary is printed.
    """
    root = logging.getLogger()
    root.setLevel(_level(log_level, logging.INFO))

    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(_level(console_level, logging.INFO))
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=TIMESTAMP_FORMAT))
    root.addHandler(console)

    if enable_file:
        directory = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        root.addHandler(_rotating_handler(directory / MAIN_LOG_FILE, logging.DEBUG, max_size_mb, backup_count))
        root.addHandler(
            _rotating_handler(directory / ERROR_LOG_FILE, logging.ERROR, ERROR_LOG_MAX_MB, ERROR_LOG_BACKUPS)
        )

    for package, level in PACKAGE_LEVELS.items():
        logging.getLogger(package).setLevel(level)

    if settings:
        print_config_summary(settings)


def get_logger(name: str, log_level: str | None = None) -> logging.Logger:
    """Return the named logger, optionally pinning its level.

    Example:
        logger = get_logger(__name__)
        logger.info("Daily tick started")
    """
    logger = logging.getLogger(name)
    if log_level:
        logger.setLevel(_level(log_level, logging.INFO))
    return logger


def log_context(
    operation: str,
    record_id: str | None = None,
    recipient: str | None = None,
    **kwargs,
) -> str:
    """Build the prefix used by delivery log lines.

    >>> log_context("send", record_id="3f2a", recipient="me@example.com", kind="payment_reminder")
    '#3f2a | send | →me@example.com (kind=payment_reminder)'
    """
    head = f"#{record_id} | {operation}" if record_id else operation
    if recipient:
        head += f" | →{recipient}"
    if not kwargs:
        return head
    details = ", ".join(f"{key}={value}" for key, value in kwargs.items())
    return f"{head} ({details})"
