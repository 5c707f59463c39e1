#!/usr/bin/env python3
"""
PushTalk sink server

Starts the upload sink that forwards received clips to Slack.

Usage:
    python scripts/run_sink.py                 # APP_HOST / APP_PORT from .env
    python scripts/run_sink.py --port 9000 --reload

Requires SLACK_BOT_TOKEN and SLACK_CHANNEL in the environment or .env.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path for ``src`` imports
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import uvicorn  # noqa: E402

from src.core.config import get_settings  # noqa: E402

logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Run the PushTalk upload sink")
    parser.add_argument("--host", default=settings.app_host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.app_port, help="Bind port")
    parser.add_argument("--reload", action="store_true", help="Reload on source changes")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level)
    if not settings.slack_bot_token or not settings.slack_channel:
        logger.warning("SLACK_BOT_TOKEN / SLACK_CHANNEL not set; uploads will be rejected")

    uvicorn.run(
        "src.api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
