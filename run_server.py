#!/usr/bin/env python3
"""Run the Lexa API server.

Usage:
    python run_server.py                    # Run with defaults
    python run_server.py --port 8080        # Custom port
    python run_server.py --reload           # Dev mode with auto-reload
    python run_server.py --log-format json  # Structured logs
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent / "src"))

env_path = Path(__file__).parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
    print(f"✓ Loaded environment from {env_path}")

from lexa.core.logbus import setup_logging
from lexa.service.config import get_config


def main():
    config = get_config()

    parser = argparse.ArgumentParser(description="Run Lexa API Server")
    parser.add_argument("--host", default=config.host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.port, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--log-level", default=config.log_level, help="Log level")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=config.log_format,
        help="Console log format",
    )
    args = parser.parse_args()

    setup_logging(args.log_level, args.log_format)

    print("\n" + "=" * 60)
    print("LEXA API SERVER")
    print("=" * 60)
    print(f"  Host:       {args.host}")
    print(f"  Port:       {args.port}")
    print(f"  Reload:     {args.reload}")
    print(f"  Log Level:  {args.log_level}")
    print()
    print(f"  Gemini API: {'✓ configured' if config.gemini_api_key else '✗ NOT SET'}")
    print(f"  LeyChile:   {config.leychile_base_url}")
    print("=" * 60)
    print()

    for error in config.validate():
        print(f"⚠️  Warning: {error}")

    import uvicorn

    # Sessions live in process memory, so a single worker.
    uvicorn.run(
        "lexa.service.api:app",
        host=args.host,
        port=args.port,
        workers=1,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
