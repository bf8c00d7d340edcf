"""Entry point for the relaychat server and terminal client."""

import argparse
import asyncio
import logging
import sys

from relaychat.api.app import create_api, run_server
from relaychat.client import TerminalClient
from relaychat.config import Config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Relaychat — chat relay with suggested replies",
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["serve", "client"],
        default="serve",
        help="Run the relay server (default) or a terminal client",
    )
    parser.add_argument("--host", help="Interface to listen on")
    parser.add_argument("--port", type=int, help="Port to listen on / connect to")
    parser.add_argument("--ollama-url", help="Text-generation backend address")
    parser.add_argument("--model", help="Model used for suggestions")
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for suggestions",
    )
    parser.add_argument("--url", help="Relay address for the client")
    return parser


def main():
    """Parse arguments and start the server or the client."""
    args = _build_parser().parse_args()

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logger = logging.getLogger(__name__)

    config = Config.from_args(
        host=args.host,
        port=args.port,
        ollama_url=args.ollama_url,
        model=args.model,
        generation_timeout=args.timeout,
    )

    errors = config.validate()
    if errors:
        for err in errors:
            logger.error(err)
        sys.exit(1)

    if args.command == "client":
        url = args.url or config.websocket_url
        try:
            asyncio.run(TerminalClient(url).run())
        except KeyboardInterrupt:
            pass
        return

    app = create_api(config)
    run_server(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
