"""HTTP liveness and on-demand digest endpoints."""

from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, HTTPException
from prometheus_client import make_asgi_app

from coach_queue.config.logging_config import get_logger
from coach_queue.domain.exceptions import ConfigurationError
from coach_queue.use_cases.publish_summary import SummaryPublisher

logger = get_logger(__name__)


def create_health_app(publisher: SummaryPublisher) -> FastAPI:
    """Build the FastAPI app served next to the Socket Mode connection."""

    app = FastAPI(title="Coach Queue", docs_url=None, redoc_url=None)

    @app.get("/")
    def liveness() -> dict[str, Any]:
        return {
            "status": "ok",
            "service": "coach_queue",
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get("/run-summary-now")
    def run_summary_now() -> dict[str, Any]:
        try:
            result = publisher.run_all_summaries_now()
        except ConfigurationError as exc:
            logger.error("summary_trigger_rejected", error=str(exc))
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return result.model_dump(mode="json")

    app.mount("/metrics", make_asgi_app())
    return app
