"""
agentforge entry point.

This file handles startup concerns (arg-parsing, settings, logging) and launches the appropriate
interface (API or interactive CLI).
"""

import argparse
import logging
import sys

from agentforge.api.app import run_api
from agentforge.config import Settings

logger = logging.getLogger(__name__)

_SECRET_FIELDS = {"ANTHROPIC_API_KEY", "OPENAI_API_KEY", "EXA_API_KEY"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the agentforge application.

    This function sets up the command-line interface, initializes logging, and starts the
    application in either API or CLI mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    settings = Settings()

    parser = argparse.ArgumentParser(description="Build and run AI agents from descriptions")
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="Launch the REST API or the interactive CLI (default: api)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument("--port", type=int, default=settings.API_PORT, help="API port")
    args = parser.parse_args(argv)

    # Command-line arguments override the environment
    settings.LOG_LEVEL = args.log_level
    settings.API_PORT = args.port

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting agentforge [%s mode]", args.mode)
    logger.debug("Settings: %s", settings.model_dump(exclude=_SECRET_FIELDS))

    if args.mode == "api":
        run_api(settings, host="0.0.0.0", reload=settings.DEBUG)
        return

    # Lazy import to avoid CLI dependencies if not needed
    import threading  # pylint: disable=import-outside-toplevel

    from agentforge.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    # Start API server in a separate thread
    api_thread = threading.Thread(
        target=run_api,
        args=(settings,),
        kwargs={
            "host": "127.0.0.1",
            "reload": False,  # Reload doesn't work well with threading
            "log_level": "warning",
        },
        daemon=True,
    )
    api_thread.start()

    # Run CLI in main thread
    run_cli(settings)


if __name__ == "__main__":
    main()
