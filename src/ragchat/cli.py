"""Command-line entry point: run either tier under uvicorn."""

import argparse

import uvicorn

_APP_FACTORIES = {
    "gateway": "ragchat.gateway.app:get_app",
    "storage": "ragchat.app:get_app",
}

_DEFAULT_PORTS = {"gateway": 8080, "storage": 8081}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Run the RAG chat API gateway or storage service",
    )
    parser.add_argument(
        "tier",
        choices=sorted(_APP_FACTORIES),
        help="Which tier to serve",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Bind host (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Bind port (default: 8080 for gateway, 8081 for storage)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Reload on code changes (development only)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = parse_args(argv)
    uvicorn.run(
        _APP_FACTORIES[args.tier],
        factory=True,
        host=args.host,
        port=args.port or _DEFAULT_PORTS[args.tier],
        reload=args.reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
