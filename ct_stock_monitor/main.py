from __future__ import annotations

import logging
import signal
import sys
import threading
import time
from datetime import datetime
from typing import Optional

from . import config, notifier, scraper


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def run_cycle(cfg: config.Config, session=None, transport=None) -> Optional[scraper.StockSnapshot]:
    """Perform one check-and-notify cycle. Never raises."""
    logger = logging.getLogger(__name__)
    logger.info("Checking stock at %s...", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    try:
        snapshot = scraper.check_stock(cfg, session=session)

        logger.info("Stock information for SKU %s (%s):", snapshot.sku, snapshot.name or "Unknown")
        for store in snapshot.stores:
            logger.info("  %s", store.summary())

        if snapshot.in_stock():
            logger.info("Stock found! Sending notification...")
            notifier.send_notification(cfg, snapshot, transport=transport)
        else:
            logger.info("No stock available at any store.")
        return snapshot

    except scraper.StockCheckError as e:
        logger.error("Error checking stock: %s", e)
    except Exception:
        logger.exception("Unexpected error during stock check for SKU %s.", cfg.sku)
    return None


def run_forever(cfg: config.Config, stop_event: Optional[threading.Event] = None) -> None:
    """Run a cycle now, then every check_interval_minutes until stop_event is set.

    Ticks are fixed-rate on the monotonic clock.  A stop request is only
    looked at between cycles.
    """
    logger = logging.getLogger(__name__)
    if stop_event is None:
        stop_event = threading.Event()

    interval = cfg.check_interval_seconds
    next_run = time.monotonic()
    while not stop_event.is_set():
        run_cycle(cfg)

        next_run += interval
        delay = next_run - time.monotonic()
        if delay < 0:
            logger.warning("Stock check overran the %d minute interval; starting next check now.",
                           cfg.check_interval_minutes)
            next_run = time.monotonic()
            delay = 0
        if stop_event.wait(delay):
            break

    logger.info("Stop requested; stock checker exiting.")


def _install_signal_handlers(stop_event: threading.Event) -> None:
    logger = logging.getLogger(__name__)

    def _handler(signum, frame) -> None:
        logger.info("Received signal %s; stopping after the current check.", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main() -> None:
    """Load configuration and run the checker until signalled."""
    setup_logging()
    logger = logging.getLogger(__name__)

    logger.info("Loading configuration...")
    try:
        cfg = config.load_config(config.CONFIG_PATH)
    except config.ConfigLoadError as e:
        logger.error("Failed to load configuration: %s", e)
        sys.exit(1)

    logger.info("Starting stock checker for SKU %s", cfg.sku)
    logger.info(
        "Checking %d stores every %d minutes",
        len(cfg.stores),
        cfg.check_interval_minutes,
    )

    stop_event = threading.Event()
    _install_signal_handlers(stop_event)
    run_forever(cfg, stop_event)


if __name__ == "__main__":
    main()
