"""Run the coach queue bot: Socket Mode listener, daily scheduler and HTTP health app."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn
from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler

from coach_queue.adapters.slack_client import SlackClient
from coach_queue.config.logging_config import get_logger, setup_logging
from coach_queue.config.settings import Settings, get_settings
from coach_queue.domain.exceptions import ConfigurationError
from coach_queue.presentation.health_api import create_health_app
from coach_queue.presentation.slack_app import register_handlers
from coach_queue.use_cases.app_factory import build_container
from coach_queue.use_cases.summary_scheduler import create_summary_scheduler

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the coach mention queue bot")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs in JSON format",
    )
    parser.add_argument(
        "--run-summary-once",
        action="store_true",
        help="Post today's digests and exit",
    )
    return parser.parse_args(argv)


def initialize_logging(settings: Settings, *, json_logs: bool = False) -> None:
    setup_logging(log_level=settings.log_level, json_logs=json_logs)
    logger.info("logging_initialized", level=settings.log_level, json_logs=json_logs)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    settings = get_settings()
    initialize_logging(settings, json_logs=args.json_logs)

    if args.run_summary_once:
        container = build_container(settings)
        result = container.summaries.run_daily_summary_job(trigger="cli")
        return 0 if result.succeeded else 1

    if settings.slack_app_token is None:
        raise ConfigurationError("SLACK_APP_TOKEN must be set to run in Socket Mode")

    app = App(token=settings.slack_bot_token.get_secret_value())
    container = build_container(settings, chat=SlackClient(client=app.client))
    register_handlers(app, container)

    scheduler = create_summary_scheduler(
        container.summaries, settings.summary_time, container.calendar.tz
    )
    handler = SocketModeHandler(app, settings.slack_app_token.get_secret_value())

    scheduler.start()
    handler.connect()
    logger.info(
        "coach_queue_started",
        coaches=[coach.key for coach in container.roster],
        health_port=settings.health_port,
    )
    try:
        # uvicorn installs its own SIGINT/SIGTERM handling and returns on shutdown
        uvicorn.run(
            create_health_app(container.summaries),
            host=settings.health_host,
            port=settings.health_port,
            log_config=None,
        )
    finally:
        scheduler.shutdown(wait=False)
        handler.close()
        logger.info("coach_queue_stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
