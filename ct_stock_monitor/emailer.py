"""Email formatting and delivery.

Builds the stock-alert message and hands it to a mail relay.  Two relays
are available behind the same `deliver(message)` interface: a direct
SMTP session (STARTTLS or SSL on 465) and the local `sendmail` binary.
"""

from __future__ import annotations

import html
import logging
import smtplib
import ssl
import subprocess
from email.message import EmailMessage
from email.utils import formataddr

from .config import MAIL_TIMEOUT_SECONDS, EmailConfig
from .scraper import BRAND

logger = logging.getLogger(__name__)

DEFAULT_FROM_NAME = f"{BRAND} Stock Checker"


class EmailConfigError(Exception):
    """Raised when SMTP delivery is selected but settings are incomplete."""


class EmailDeliveryError(Exception):
    """Raised when the mail relay fails to accept the message."""


def build_subject(product: str) -> str:
    # Description comes from the endpoint; a header must stay on one line.
    product = " ".join(product.split())
    return f"Stock Alert: {product} Available at {BRAND}"


def build_bodies(product: str, store_list: str, url: str) -> tuple[str, str]:
    """Return (plain_text, html) bodies."""
    plain = (
        "Stock Alert!\n\n"
        f"The item you're tracking ({product}) is now in stock at the following {BRAND} locations:\n\n"
        f"{store_list}\n\n"
        f"Check it out at: {url}\n"
    )

    # --- HTML body (avoid nested f-strings)
    html_body = (
        "<html>"
        "<body>"
        "<h1>Stock Alert!</h1>"
        "<p>The item you're tracking <strong>{product}</strong> is now in stock "
        "at the following {brand} locations:</p>"
        "<pre>{stores}</pre>"
        '<p>Check it out at: <a href="{url}">StockTrack</a></p>'
        "</body>"
        "</html>"
    ).format(
        product=html.escape(product),
        brand=BRAND,
        stores=html.escape(store_list),
        url=html.escape(url, quote=True),
    )
    return plain, html_body


def sender_address(cfg: EmailConfig) -> str:
    from_email = cfg.from_email or cfg.username
    if not from_email:
        raise EmailConfigError("emailConfig.fromEmail (or username) is required for SMTP delivery")
    return formataddr((cfg.from_name or DEFAULT_FROM_NAME, from_email))


def build_message(cfg: EmailConfig, to: str, subject: str, plain: str, html_body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender_address(cfg)
    msg["To"] = to
    msg.set_content(plain)
    msg.add_alternative(html_body, subtype="html")
    return msg


class SMTPTransport:
    """Deliver over a direct SMTP session."""

    def __init__(self, cfg: EmailConfig, timeout: int = MAIL_TIMEOUT_SECONDS) -> None:
        self.cfg = cfg
        self.timeout = timeout

    def deliver(self, msg: EmailMessage) -> None:
        host, port = self.cfg.host, int(self.cfg.port)
        try:
            if port == 465:
                with smtplib.SMTP_SSL(host, port, context=ssl.create_default_context(), timeout=self.timeout) as s:
                    self._login(s)
                    s.send_message(msg)
            else:
                with smtplib.SMTP(host, port, timeout=self.timeout) as s:
                    s.ehlo()
                    if self.cfg.secure:
                        s.starttls(context=ssl.create_default_context())
                        s.ehlo()
                    self._login(s)
                    s.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f"SMTP delivery via {host}:{port} failed: {e}") from e
        logger.info("Email sent to %s via %s:%s (subject=%s)", msg["To"], host, port, msg["Subject"])

    def _login(self, s: smtplib.SMTP) -> None:
        if self.cfg.username:
            s.login(self.cfg.username, self.cfg.password or "")


class SendmailTransport:
    """Hand the message to the local mail relay (`sendmail -t -i`)."""

    def __init__(self, cfg: EmailConfig, timeout: int = MAIL_TIMEOUT_SECONDS) -> None:
        self.cmd = [cfg.sendmail_path, "-t", "-i"]
        self.timeout = timeout

    def deliver(self, msg: EmailMessage) -> None:
        try:
            p = subprocess.run(
                self.cmd,
                input=msg.as_bytes(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise EmailDeliveryError(f"Mail command {self.cmd[0]} failed: {e}") from e

        if p.returncode != 0:
            err = p.stderr.decode("utf-8", errors="replace").strip()
            raise EmailDeliveryError(f"Mail command failed (rc={p.returncode}): {err}")
        logger.info("Email handed to %s for %s (subject=%s)", self.cmd[0], msg["To"], msg["Subject"])


def require_smtp_settings(cfg: EmailConfig) -> None:
    if not cfg.host or not cfg.port:
        raise EmailConfigError("SMTP host and port are required")


def get_transport(cfg: EmailConfig):
    """Return the relay selected by cfg.transport.

    Host and port are required whichever relay is used.
    """
    require_smtp_settings(cfg)
    if cfg.transport == "sendmail":
        return SendmailTransport(cfg)
    return SMTPTransport(cfg)


__all__ = [
    "EmailConfigError",
    "EmailDeliveryError",
    "build_subject",
    "build_bodies",
    "build_message",
    "SMTPTransport",
    "SendmailTransport",
    "require_smtp_settings",
    "get_transport",
]
