"""
Health dashboard API.

Serves the dashboard's static files, relays chat requests upstream, and
exposes the assessment and chart-data pipeline over HTTP.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import structlog
import uvicorn
from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from adapters.charts.session import ChartSession
from adapters.relay.chat import ChatRelay
from healthdash.config import AppConfig, get_config
from healthdash.domain.errors import StructuralError, UpstreamRelayError
from healthdash.log import configure_logging
from healthdash.services.assessment import HealthAssessmentService
from healthdash.services.visualization import vital_sign_charts

logger = structlog.get_logger(__name__)

ROOT_MESSAGE = "Proxy server is running. Use POST /api/chat to send messages."
CHAT_METHOD_HINT = "Method Not Allowed. Please POST to /api/chat with { model, messages }."


class ChartsRequest(BaseModel):
    """Reading history posted by the dashboard for chart preparation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    records: list[dict[str, Any]] = Field(default_factory=list)
    daily_records: list[dict[str, Any]] = Field(default_factory=list)
    days: int = 7


def _error_response(status_code: int, message: str, error: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, "error": error})


def create_app(
    config: AppConfig | None = None,
    relay: ChatRelay | None = None,
    service: HealthAssessmentService | None = None,
) -> FastAPI:
    """Build the API; collaborators are injectable for tests."""
    config = config or get_config()
    relay = relay or ChatRelay(config.relay)
    service = service or HealthAssessmentService(
        weights=config.scoring.weights, thresholds=config.scoring.thresholds
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "api_started", environment=config.environment, upstream=relay.config.upstream_url
        )
        yield
        await relay.aclose()

    app = FastAPI(
        title="Health Dashboard API",
        description="Vital-sign assessment, chart data and chat relay for the health dashboard",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        return {"ok": True, "message": ROOT_MESSAGE}

    @app.get("/api/chat")
    async def chat_hint() -> JSONResponse:
        return JSONResponse(status_code=405, content={"ok": False, "message": CHAT_METHOD_HINT})

    @app.post("/api/chat")
    async def chat(request: Request) -> Any:
        try:
            payload = await request.json()
        except ValueError as e:
            return _error_response(400, "Request body must be JSON", str(e))
        if not isinstance(payload, dict):
            return _error_response(
                400, "Request body must be a JSON object", type(payload).__name__
            )

        try:
            return await relay.forward(payload, request.headers.get("authorization"))
        except UpstreamRelayError as e:
            return _error_response(e.status_code, str(e), e.detail)

    @app.post("/api/assessment")
    async def assessment(reading: dict[str, Any] = Body(...)) -> Any:
        try:
            report = service.assess(reading)
        except StructuralError as e:
            return _error_response(422, "Invalid reading", str(e))
        return report.model_dump(mode="json", by_alias=True)

    @app.post("/api/charts")
    async def charts(body: ChartsRequest) -> Any:
        try:
            session = ChartSession(report_days=body.days)
            vital = [
                session.render(spec)
                for spec in vital_sign_charts(body.records, config.scoring.thresholds)
            ]
            report = session.render_report(body.daily_records)
        except ValueError as e:
            return _error_response(422, "Invalid chart request", str(e))
        return {
            "vitalSigns": [spec.to_chartjs() for spec in vital],
            "report": [spec.to_chartjs() for spec in report],
        }

    # Static mount goes last so the API routes take precedence
    if config.api.static_dir:
        static_dir = Path(config.api.static_dir)
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
        logger.info("static_files_mounted", directory=str(static_dir))

    return app


def run() -> None:
    config = get_config()
    configure_logging(config.logging)
    uvicorn.run(
        "adapters.relay.app:create_app",
        factory=True,
        host=config.api.host,
        port=config.api.port,
        reload=config.api.reload,
    )


if __name__ == "__main__":
    run()
