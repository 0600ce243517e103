"""Command line entry point.

    python -m iyzico_subscriptions serve   # HTTP server + daily sweep (default)
    python -m iyzico_subscriptions sweep   # run a single expiry sweep tick and exit
"""

import argparse
import json
import os
import sys
from typing import Optional, Sequence

import uvicorn


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iyzico-subscriptions",
        description="iyzico subscription service - webhook endpoint and daily expiry sweep",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/settings.yaml"),
        help="Path to settings.yaml (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "json"),
    )

    commands = parser.add_subparsers(dest="command")

    serve = commands.add_parser("serve", help="Run the HTTP server (default)")
    serve.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "8090")))
    serve.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Enable auto-reload for development",
    )

    commands.add_parser("sweep", help="Run one expiry sweep tick and print its summary")
    return parser


def run_server(args: argparse.Namespace) -> int:
    if not os.getenv("IYZICO_SECRET_KEY"):
        print("Warning: IYZICO_SECRET_KEY is not set, webhooks will answer 500", file=sys.stderr)

    uvicorn.run(
        "iyzico_subscriptions.main:create_app",
        factory=True,
        host=getattr(args, "host", "0.0.0.0"),
        port=getattr(args, "port", 8090),
        log_level=args.log_level.lower(),
        reload=getattr(args, "reload", False),
        access_log=False,  # RequestLoggingMiddleware logs requests
    )
    return 0


def run_sweep(args: argparse.Namespace) -> int:
    from iyzico_subscriptions.config import Config
    from iyzico_subscriptions.main import create_app

    app = create_app(config=Config(args.config), enable_scheduler=False)
    summary = app.state.expiry_sweep.run_once()
    print(json.dumps(summary.to_dict()))
    return 1 if summary.errored else 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["CONFIG_PATH"] = args.config

    try:
        if args.command == "sweep":
            sys.exit(run_sweep(args))
        sys.exit(run_server(args))
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
        sys.exit(0)
    except Exception as e:
        print(f"Failed to start service: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
