#!/usr/bin/env python3
"""Check the stored mail transport settings.

Connects and authenticates with the transport settings saved in the
settings store, explains the failure category when it does not work, and
optionally sends a test message to the stored recipient.

Usage:
    python -m rent_notifier.scripts.check_transport
    python -m rent_notifier.scripts.check_transport --verbose
    python -m rent_notifier.scripts.check_transport --send-test
"""

from __future__ import annotations

import argparse
import sys

from rent_notifier.clients.smtp import SMTPClient
from rent_notifier.config import get_settings
from rent_notifier.core.exceptions import NotifierError, TransportConnectionError
from rent_notifier.core.logger import get_logger, mask_secret, setup_logging
from rent_notifier.models.providers import detect_provider
from rent_notifier.models.settings import TransportConfig
from rent_notifier.scheduler.tick import create_scheduler

logger = get_logger(__name__)


def print_header() -> None:
    """Print script header."""
    print("\n" + "=" * 80)
    print("  Rent Notifier Mail Transport Check")
    print("=" * 80)


def print_footer() -> None:
    """Print script footer."""
    print("=" * 80 + "\n")


def print_config(config: TransportConfig, recipient: str | None) -> None:
    """Print the stored transport settings (secret masked)."""
    print("\nStored Configuration:")
    print(f"  SMTP Host:      {config.host}")
    print(f"  SMTP Port:      {config.port}")
    print(f"  Encryption:     {'SSL/TLS' if config.use_encryption else 'STARTTLS when offered'}")
    print(f"  Username:       {config.username}")
    print(f"  Secret:         {mask_secret(config.secret)}")
    print(f"  Sender:         {config.sender_name} <{config.sender_address}>")
    print(f"  Recipient:      {recipient or '(not set)'}")


def check_connection(config: TransportConfig, timeout: int) -> TransportConnectionError | None:
    """Connect and authenticate; return the failure, if any."""
    print("\nTesting SMTP connection...")
    try:
        with SMTPClient(config, timeout=timeout) as client:
            client.verify()
    except TransportConnectionError as e:
        print(f"FAILED ({e.category.value}): {e}")
        return e
    print("SMTP connection test PASSED")
    return None


def print_recommendations(config: TransportConfig, error: TransportConnectionError | None) -> None:
    """Print hints for the failure category and the detected provider."""
    print("\n" + "-" * 80)
    if error is None:
        print("  Transport settings work. Scheduled notifications can be delivered.")
        return

    print(f"  {error.category.description}")
    provider = detect_provider(config.sender_address)
    if provider:
        print(f"  Detected provider: {provider.name}")
        print(
            f"    Suggested: {provider.host}:{provider.port} "
            f"({'SSL/TLS' if provider.use_encryption else 'STARTTLS'})"
        )
        print(f"    Note: {provider.note}")
    if error.is_transient:
        print("  This kind of failure is often temporary; the next scheduled run may succeed.")


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        0 if all checks passed, 1 if any check failed.
    """
    parser = argparse.ArgumentParser(description="Check the stored mail transport settings.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging output")
    parser.add_argument(
        "--send-test",
        "-t",
        action="store_true",
        help="Send a test message to the stored recipient",
    )
    args = parser.parse_args(argv)

    setup_logging(
        log_level="DEBUG" if args.verbose else "INFO",
        console_level="DEBUG" if args.verbose else "WARNING",
        enable_file=False,
    )

    print_header()
    settings = get_settings()

    try:
        scheduler, storage = create_scheduler(settings)
    except NotifierError as e:
        print(f"\nCannot open settings storage: {e}")
        print_footer()
        return 1

    try:
        config = storage.settings_store.get_transport_config()
        if config is None:
            print("\nMail transport is not configured. Save it via PUT /config/transport first.")
            return 1

        recipient = storage.settings_store.get_recipient()
        print_config(config, recipient.email if recipient else None)

        error = check_connection(config, settings.SMTP_TIMEOUT)
        print_recommendations(config, error)
        if error is not None:
            return 1

        if args.send_test:
            result = scheduler.send_test_message_now()
            print(f"\nTest message: {result.message}")
            return 0 if result.success else 1
        return 0

    except NotifierError as e:
        print(f"\nCheck failed: {e}")
        logger.debug("Transport check failed", exc_info=True)
        return 1

    finally:
        scheduler.close()
        storage.close()
        print_footer()


if __name__ == "__main__":
    sys.exit(main())
