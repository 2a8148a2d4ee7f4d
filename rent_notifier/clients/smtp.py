"""SMTP transport for notification delivery.

Sends rendered notifications via SMTP with support for QQ, 163, Gmail,
Outlook and compatible SMTP servers. Features connection reuse for better
performance.

Features:
- Connection reuse with automatic refresh
- Implicit TLS (SMTPS) or opportunistic STARTTLS
- Multipart emails (HTML + plaintext)
- Every failure normalized into a TransportErrorCategory

Author: Odiseo
Version: 3.0.0
"""

from __future__ import annotations

import smtplib
import socket
import threading
import time
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from rent_notifier.core.exceptions import TransportConnectionError
from rent_notifier.core.logger import get_logger
from rent_notifier.models.notification import RenderedMessage, TransportErrorCategory
from rent_notifier.models.settings import TransportConfig

logger = get_logger(__name__)


def classify_error(error: BaseException) -> TransportErrorCategory:
    """Map a low-level SMTP or socket error onto a category.

    Args:
        error: Exception raised by smtplib or the socket layer.

    Returns:
        Normalized error category.
    """
    if isinstance(error, TransportConnectionError):
        return error.category
    if isinstance(error, smtplib.SMTPAuthenticationError):
        return TransportErrorCategory.AUTHENTICATION
    if isinstance(error, smtplib.SMTPRecipientsRefused):
        return TransportErrorCategory.RECIPIENT_REJECTED
    if isinstance(error, (smtplib.SMTPSenderRefused, smtplib.SMTPDataError)):
        return TransportErrorCategory.MESSAGE_REJECTED
    if isinstance(error, (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected)):
        return TransportErrorCategory.CONNECTION
    # socket.timeout is an alias of TimeoutError, which is itself an OSError
    if isinstance(error, (TimeoutError, socket.timeout)):
        return TransportErrorCategory.TIMEOUT
    if isinstance(error, smtplib.SMTPException):
        return TransportErrorCategory.PROTOCOL
    if isinstance(error, OSError):
        return TransportErrorCategory.CONNECTION
    return TransportErrorCategory.UNKNOWN


class SMTPClient:
    """SMTP delivery client with connection reuse.

    Attributes:
        config: Transport settings the client was built from.
        timeout: Socket timeout in seconds.
    """

    # Seconds of idleness before the connection is considered stale
    CONNECTION_TIMEOUT = 60

    def __init__(self, transport_config: TransportConfig, timeout: int = 30) -> None:
        """Initialize SMTP client.

        Args:
            transport_config: Host, port, credentials and sender identity.
            timeout: Socket timeout in seconds.
        """
        self.config = transport_config
        self.timeout = timeout

        # Connection state
        self._connection: smtplib.SMTP | None = None
        self._last_used: float = 0
        self._lock = threading.Lock()

        logger.info(
            f"SMTP Client initialized: {self.config.host}:{self.config.port} "
            f"(ssl={self.config.use_encryption})"
        )

    def _get_connection(self) -> smtplib.SMTP:
        """Get or create SMTP connection with automatic refresh.

        Must be called with the lock held.

        Raises:
            TransportConnectionError: If connection cannot be established.
        """
        now = time.time()

        if self._connection and (now - self._last_used) < self.CONNECTION_TIMEOUT:
            try:
                status = self._connection.noop()[0]
                if status == 250:
                    self._last_used = now
                    return self._connection
            except (smtplib.SMTPException, OSError):
                logger.debug("Stale SMTP connection detected, reconnecting...")
            self._close_connection()
        elif self._connection:
            self._close_connection()

        return self._create_connection()

    def _create_connection(self) -> smtplib.SMTP:
        """Open, secure and authenticate a new SMTP connection.

        Raises:
            TransportConnectionError: If any step fails.
        """
        smtp: smtplib.SMTP | None = None
        try:
            logger.debug(f"Connecting to SMTP: {self.config.host}:{self.config.port}")
            if self.config.use_encryption:
                smtp = smtplib.SMTP_SSL(self.config.host, self.config.port, timeout=self.timeout)
            else:
                smtp = smtplib.SMTP(self.config.host, self.config.port, timeout=self.timeout)
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    logger.debug("Starting TLS...")
                    smtp.starttls()
                    smtp.ehlo()

            logger.debug("Authenticating...")
            smtp.login(self.config.username, self.config.secret)

            self._connection = smtp
            self._last_used = time.time()

            logger.debug("SMTP connection established")
            return smtp

        except Exception as e:
            category = classify_error(e)
            logger.error(f"Failed to establish SMTP connection ({category.value}): {e}")
            if smtp is not None:
                try:
                    smtp.close()
                except OSError:
                    pass
            raise TransportConnectionError(
                f"Failed to connect to {self.config.host}:{self.config.port}: {e}",
                category=category,
            ) from e

    def _close_connection(self) -> None:
        """Close existing SMTP connection safely."""
        if self._connection:
            try:
                self._connection.quit()
            except Exception as e:
                logger.debug(f"Error closing SMTP connection (non-critical): {e}")
            finally:
                self._connection = None
                self._last_used = 0

    def build_message(self, recipient: str, message: RenderedMessage) -> MIMEMultipart:
        """Build the multipart/alternative message (text first, then HTML)."""
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((str(Header(self.config.sender_name, "utf-8")), self.config.sender_address))
        msg["To"] = recipient
        msg["Subject"] = Header(message.subject, "utf-8")

        if message.body_text:
            msg.attach(MIMEText(message.body_text, "plain", "utf-8"))
        msg.attach(MIMEText(message.body_html, "html", "utf-8"))
        return msg

    def send(self, recipient: str, message: RenderedMessage) -> None:
        """Send a rendered message.

        A single attempt: a failed send drops the connection so the next
        call starts fresh, but is not retried here.

        Args:
            recipient: Recipient email address.
            message: Rendered subject and bodies.

        Raises:
            TransportConnectionError: If connecting or sending fails.
        """
        msg = self.build_message(recipient, message)

        with self._lock:
            smtp = self._get_connection()
            try:
                smtp.send_message(msg, from_addr=self.config.sender_address, to_addrs=[recipient])
            except Exception as e:
                category = classify_error(e)
                logger.warning(f"SMTP send to {recipient} failed ({category.value}): {e}")
                self._close_connection()
                raise TransportConnectionError(f"Failed to send to {recipient}: {e}", category=category) from e

        logger.info(f"Email sent to {recipient} - Subject: {message.subject[:50]}")

    def verify(self) -> None:
        """Connect and authenticate without sending anything.

        Raises:
            TransportConnectionError: If the settings do not work.
        """
        logger.info(f"Testing SMTP connection to {self.config.host}:{self.config.port}...")
        with self._lock:
            self._close_connection()
            self._get_connection()
        logger.info("SMTP connection test successful")

    def close(self) -> None:
        """Close SMTP connection and cleanup resources."""
        with self._lock:
            self._close_connection()
            logger.debug("SMTP client closed")

    def __enter__(self) -> SMTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close connection."""
        self.close()
