"""Logging setup and Logfire tracing for repository calls."""

import logging

import logfire

from mongorepo import __version__
from mongorepo.config import Settings

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Apply ``settings.log_level`` to the package loggers."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("mongorepo").setLevel(settings.log_level)


def initialize_logfire(settings: Settings) -> None:
    """
    Initialize Logfire and instrument the MongoDB driver.

    Must be called ONCE at application startup, before repositories are used.

    Repository methods open ``repository.*`` spans on their own; this adds
    the cloud exporter, per-command PyMongo spans, and a bridge from stdlib
    logging into Logfire.

    Args:
        settings: Settings containing the Logfire token

    Returns:
        None. Logs success or warning messages.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="mongorepo",
            service_version=__version__,
            environment=settings.environment,
        )

        logfire.instrument_pymongo()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire tracing initialized")

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        # Repositories keep working without tracing
