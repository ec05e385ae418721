#!/usr/bin/env python3
"""SMTP Server Startup Script.

Starts the SMTP mailbox server from a source checkout.

Usage:
    python scripts/start_smtp_server.py

Environment Variables:
    SMTP_HOST: Bind address (default: 0.0.0.0)
    SMTP_PORT: Listen port (default: 2525)
    SMTP_ACCEPTED_DOMAIN: Accepted recipient suffix (default: @hk.com)
    MAILBOX_ROOT: Mailbox directory (default: ./mailbox)
    SMTP_MAX_CONNECTIONS: Max concurrent connections (default: 100)
    SMTP_IDLE_TIMEOUT: Per-line read deadline in seconds (default: 300)
    METRICS_PORT: Prometheus metrics port (default: disabled)
    LOG_LEVEL / LOG_JSON: Logging level and format
"""

import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from main import main

if __name__ == '__main__':
    main()
