"""Simple SMTP Mailbox Server - process entry point.

Wires configuration, logging, metrics, the filesystem mailbox store and the
SMTP server together, and handles shutdown signals:
- Startup: ensure the mailbox root exists, optionally expose metrics, bind
- Shutdown (SIGINT/SIGTERM): stop accepting, let open sessions finish
  within SMTP_SHUTDOWN_GRACE seconds, cancel what is left
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from config import Settings, get_settings
from infrastructure.mailbox import FilesystemMailboxStore
from infrastructure.smtp import SMTPServer
from observability.logging_config import configure_logging
from observability.metrics import start_metrics_server

logger = logging.getLogger(__name__)


async def serve(settings: Settings, stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the SMTP server until ``stop_event`` is set or a signal arrives.

    Raises:
        OSError: If the mailbox root cannot be created or the port cannot be bound
    """
    stop_event = stop_event or asyncio.Event()

    store = FilesystemMailboxStore(settings.MAILBOX_ROOT)
    store.ensure_root()

    if settings.METRICS_PORT:
        start_metrics_server(settings.METRICS_PORT)

    server = SMTPServer.from_settings(settings, store)
    await server.start()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops: Ctrl+C surfaces as KeyboardInterrupt instead
            pass

    logger.info(f"Accepting mail for *{settings.SMTP_ACCEPTED_DOMAIN}")
    try:
        await stop_event.wait()
        logger.info("Shutting down SMTP server...")
    finally:
        await server.stop(grace=settings.SMTP_SHUTDOWN_GRACE)


def main() -> None:
    """Console entry point."""
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, exiting")
        sys.exit(0)
    except Exception as e:
        logger.error(f"SMTP server failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
