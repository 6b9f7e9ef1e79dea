"""Stock alert notifier.

Turns a StockSnapshot into an alert and dispatches it either to the log
(console mode) or through a mail relay (smtp mode).  Failures are logged
here and never propagate to the scheduler.
"""
from __future__ import annotations

import logging

from . import emailer
from .config import Config
from .scraper import StockSnapshot

logger = logging.getLogger(__name__)


def format_store_list(snapshot: StockSnapshot) -> str:
    return "\n".join(s.summary() for s in snapshot.in_stock())


def _send_console(to: str, subject: str, plain: str) -> None:
    logger.info(
        "\n=== STOCK NOTIFICATION ===\nTo: %s\nSubject: %s\n\n%s\n=========================",
        to, subject, plain,
    )
    logger.info("Console mode: notification for %s was logged, not emailed.", to)


def send_notification(config: Config, snapshot: StockSnapshot, transport=None) -> bool:
    """Deliver an alert if any store has stock.

    `transport` overrides the relay picked from config.email_config.
    Returns True when a notification went out (or was echoed in console
    mode), False otherwise.
    """
    if not snapshot.in_stock():
        logger.info("No stock available, skipping notification")
        return False

    ec = config.email_config
    try:
        product = snapshot.display_name
        subject = emailer.build_subject(product)
        plain, html_body = emailer.build_bodies(product, format_store_list(snapshot), snapshot.url)

        if ec.provider != "smtp":
            _send_console(config.email, subject, plain)
            return True

        emailer.require_smtp_settings(ec)
        msg = emailer.build_message(ec, config.email, subject, plain, html_body)
        relay = transport if transport is not None else emailer.get_transport(ec)
        logger.info("Sending email notification to %s via %s...", config.email, ec.transport)
        relay.deliver(msg)
        return True
    except emailer.EmailConfigError as e:
        logger.error("Email configuration error, no notification sent: %s", e)
    except emailer.EmailDeliveryError as e:
        logger.error("Email delivery failed: %s", e)
    except Exception:
        logger.exception("Unexpected error sending notification for SKU %s", snapshot.sku)
    return False


__all__ = ["format_store_list", "send_notification"]
