#!/usr/bin/env python3
"""
Moodle Autopilot HTTP Service

Starts the FastAPI server for the workflow API.

Usage:
    moodle-autopilot-server                  # Start on the configured port
    moodle-autopilot-server --port 8080      # Start on custom port
"""

import argparse
from pathlib import Path

import uvicorn

from .config import load_config


def main():
    parser = argparse.ArgumentParser(
        description="Moodle Autopilot HTTP Service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", "-c", type=Path, help="Config file (default: config.local.yaml)")
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: server.host from config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (default: server.port from config)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )

    args = parser.parse_args()

    config = load_config(args.config)
    host = args.host or config["server"]["host"]
    port = args.port or config["server"]["port"]

    print(f"Starting Moodle Autopilot on http://{host}:{port}")
    print(f"API docs: http://{host}:{port}/docs")
    print()

    uvicorn.run(
        "moodle_autopilot.server.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
