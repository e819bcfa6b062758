#!/usr/bin/env python3
"""
Run one capture from the command line, without the HTTP layer.

Usage:
    python scripts/capture_image.py screen.png "open account settings"
    python scripts/capture_image.py screen.png "open account settings" --session alice --debug

Prints the capture response as JSON. Exits 1 on a capture failure.
"""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from screenbrain.config import ScreenBrainConfig
from screenbrain.errors import ScreenBrainError
from screenbrain.llm_client import init_client
from screenbrain.pipeline.capture import CaptureOrchestrator, CaptureRequest, ImageUpload
from screenbrain.session.store import SessionRegistry


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Analyze one screenshot against a goal")
    parser.add_argument("image", type=Path, help="PNG or JPEG screenshot")
    parser.add_argument("goal", help="What the user is trying to do (at least two words)")
    parser.add_argument("--session", help="Session key to store the result under")
    parser.add_argument("--debug", action="store_true", help="Print the full debug payload")
    parser.add_argument("--config", type=Path, help="Config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    config = ScreenBrainConfig.load(args.config)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.server.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.image.exists():
        print(f"Image not found: {args.image}", file=sys.stderr)
        return 1

    mime_type, _ = mimetypes.guess_type(args.image.name)
    orchestrator = CaptureOrchestrator(
        init_client(config.models),
        SessionRegistry(config.storage.sessions_path),
        config,
    )
    request = CaptureRequest(
        goal=args.goal,
        image=ImageUpload(
            data=args.image.read_bytes(),
            mime_type=mime_type or "application/octet-stream",
            filename=args.image.name,
        ),
        session_key_hint=args.session,
    )

    try:
        result = orchestrator.capture(request)
    except ScreenBrainError as e:
        print(json.dumps(e.to_payload(include_debug=args.debug), indent=2, ensure_ascii=False))
        return 1

    print(json.dumps(result.to_payload(debug=args.debug), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
