#!/usr/bin/env python3
"""
Run the screenbrain HTTP API.

Usage:
    python scripts/run_server.py
    python scripts/run_server.py --port 9000 --verbose
    python scripts/run_server.py --config ./screenbrain.json

Provider credentials come from the environment (or .env):
    - ANTHROPIC_API_KEY / ANTHROPIC_AUTH_TOKEN (+ ANTHROPIC_BASE_URL)
    - OPENAI_API_KEY with SCREENBRAIN_PROVIDER=openai
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from screenbrain.config import ScreenBrainConfig
from screenbrain.server import create_app


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run the screenbrain capture API")
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file (default: $SCREENBRAIN_CONFIG or ~/.screenbrain/config.json)",
    )
    parser.add_argument("--host", help="Bind address (overrides config)")
    parser.add_argument("--port", type=int, help="Port (overrides config)")
    parser.add_argument(
        "--sessions-dir",
        help="Directory for session documents (overrides config)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    config = ScreenBrainConfig.load(args.config)
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.sessions_dir:
        config.storage.sessions_dir = args.sessions_dir

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.server.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(config)
    app.run(host=config.server.host, port=config.server.port, threaded=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
