"""Application entry point for the QuizQuest service."""

from __future__ import annotations

import argparse

from quest_app.constants.about import APP_NAME, APP_VERSION
from quest_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quest_app.core.quest_manager import QuestManager
from quest_app.server.api_server import start_api_server
from quest_app.utils.logging_config import configure_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"Run the {APP_NAME} API server.")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Interface to bind (default: %(default)s)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to listen on (default: %(default)s)")
    parser.add_argument("--log-level", default="info", help="Logging level (default: %(default)s)")
    parser.add_argument("--no-access-log", action="store_true", help="Only log failing HTTP requests")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, build the quest manager and serve the API until interrupted."""
    args = _parse_args(argv)
    logger = configure_logging(args.log_level, access_log=not args.no_access_log)
    logger.info("Starting %s %s…", APP_NAME, APP_VERSION)

    quest_manager = QuestManager()
    logger.info("Loaded topics: %s", ", ".join(quest_manager.list_topics()))
    server_thread = start_api_server(quest_manager=quest_manager, host=args.host, port=args.port)
    logger.info("API available at http://%s:%d/", args.host, args.port)
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down…")
    finally:
        quest_manager.shutdown()


if __name__ == "__main__":
    main()
