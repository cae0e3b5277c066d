# ABOUTME: Logging configuration for the sync engine and CLI.
# ABOUTME: Routes standard-library logging through a Rich console handler.

import logging

from rich.console import Console
from rich.logging import RichHandler

NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def setup_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Configure logging for the application.

    Args:
        verbose: Enable DEBUG level logging if True, otherwise INFO level.
        console: Optional Rich console to write to. Defaults to stderr.

    Logging Levels:
        ERROR: Session failures and per-profile enrichment failures
        WARNING: Retries, backoff, rate-limit refusals, skipped auto-syncs
        INFO: Progress milestones (sync start, end of list, sync complete)
        DEBUG: Per-page and per-profile details
    """
    level = logging.DEBUG if verbose else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
