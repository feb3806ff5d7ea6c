"""Operator process for one HCS cluster.

Every RECONCILE_INTERVAL seconds the operator loads ``cluster.yaml`` from the
specs directory, compares it with the tracked state and what Azure reports,
and creates or converges the cluster. Observed state, including the root
token minted at creation, is written to the state directory.

SECRETLESS ARCHITECTURE:
In-cluster the operator authenticates with a managed identity only and
refuses to start when client secrets or passwords are in its environment.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from datetime import UTC, datetime

from .config import Config, ConfigurationError
from .reconciler import ClusterReconciler
from .security import SecretlessViolationError
from .state import StateStore

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_SECURITY_VIOLATION = 2

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "taskName"}


class JsonFormatter(logging.Formatter):
    """One JSON document per record, with ``extra`` fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        document = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        document.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
        )
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    """Send structured JSON logs to stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for noisy in ("azure", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


async def run_operator(config: Config, logger: logging.Logger) -> int:
    """Build the reconciler and loop until SIGTERM or SIGINT."""
    try:
        reconciler = ClusterReconciler(config)
    except SecretlessViolationError as e:
        logger.critical(
            "Security violation: credentials detected in environment",
            extra={"error": str(e)},
        )
        return EXIT_SECURITY_VIOLATION
    except Exception as e:
        logger.error(
            "Failed to initialize reconciler",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        return EXIT_FAILURE

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _on_signal, sig, reconciler, logger)

    try:
        await reconciler.run(StateStore(config.state_dir))
    except Exception as e:
        logger.exception("Unhandled exception", extra={"error": str(e)})
        return EXIT_FAILURE

    logger.info("Operator stopped")
    return EXIT_OK


def _on_signal(sig: signal.Signals, reconciler: ClusterReconciler, logger: logging.Logger) -> None:
    logger.info("Received signal", extra={"signal": sig.name})
    reconciler.shutdown()


async def main() -> int:
    """Run the operator.

    Returns:
        Exit code: 0 on clean shutdown, 1 on failure, 2 on a security violation.
    """
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        config = Config.from_env()
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return EXIT_FAILURE

    logger.info(
        "Starting HCS cluster operator",
        extra={
            "subscription_id": config.subscription_id,
            "spec_path": str(config.spec_path),
            "state_dir": str(config.state_dir),
            "dry_run": config.dry_run,
            "correlation_id": config.correlation_id,
        },
    )
    return await run_operator(config, logger)


def run() -> None:
    """Entry point for the operator process."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
