# frontend/main.py
import asyncio
import time
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import ValidationError

from frontend.config import ConfigError, get_settings
from frontend.exposition import CONTENT_TYPE
from frontend.logging_utils import configure_logging, get_logger, log_request
from frontend.metrics import MetricsRegistry, get_metrics, sweep_sessions_periodically
from frontend.model_client import ModelClient, ModelServiceError, get_model_client
from frontend.models import Sms
from frontend.pages import render_index
from frontend.sessions import SMS_PAGE_LABEL

app = FastAPI(
    title="SMS Checker Frontend",
    version="1.0.0",
)

logger = get_logger(__name__)

SESSION_COOKIE = "SESSION"


# ==================== Startup ====================

@app.on_event("startup")
async def on_startup() -> None:
    """Validate configuration and start the optional session sweeper."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    try:
        settings.validate()
    except ConfigError as e:
        logger.error(f"ERROR: {e}")
        raise
    logger.info(f'Working with MODEL_HOST="{settings.MODEL_HOST}"')

    if settings.SESSION_SWEEP_INTERVAL > 0:
        app.state.sweeper = asyncio.create_task(
            sweep_sessions_periodically(get_metrics(), settings.SESSION_SWEEP_INTERVAL)
        )
        logger.info(f"Sweeping sessions every {settings.SESSION_SWEEP_INTERVAL}s")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    sweeper = getattr(app.state, "sweeper", None)
    if sweeper is not None:
        sweeper.cancel()


# ==================== Helpers ====================

def normalize_endpoint(path: Optional[str]) -> str:
    """Keep "/sms" and "/sms/" in one endpoint label."""
    if path is None or path == "/sms":
        return SMS_PAGE_LABEL
    return path


def finish_request(
    registry: MetricsRegistry,
    request_id: str,
    request: Request,
    status_code: int,
    start_time: float,
    extra: Optional[dict] = None,
) -> None:
    seconds = time.perf_counter() - start_time
    registry.record_ui_request(normalize_endpoint(request.url.path), request.method, status_code, seconds)
    log_request(
        request_id,
        request.method,
        request.url.path,
        status_code,
        seconds * 1000,
        level="ERROR" if status_code >= 500 else "INFO",
        extra=extra,
    )


def ensure_session(request: Request, response: Response) -> str:
    """Return the caller's session id, issuing a cookie if it has none."""
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        session_id = uuid.uuid4().hex
        response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return session_id


# ==================== Health Endpoints ====================

@app.get("/health/live")
def health_live() -> dict:
    """Liveness probe: app is running."""
    return {"status": "live"}


@app.get("/health/ready")
def health_ready():
    """
    Readiness probe: MODEL_HOST is configured.
    Returns 503 if it is missing or malformed.
    """
    try:
        get_settings().validate()
    except ConfigError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(e)},
        )
    return {"status": "ready"}


# ==================== Page Endpoints ====================

@app.get("/sms")
def redirect_to_slash(request: Request, registry: MetricsRegistry = Depends(get_metrics)):
    request_id = str(uuid.uuid4())
    start_time = time.perf_counter()
    try:
        return RedirectResponse(url=request.url.path + "/", status_code=status.HTTP_302_FOUND)
    finally:
        finish_request(registry, request_id, request, 302, start_time)


@app.get("/sms/", response_class=HTMLResponse)
def index(request: Request, registry: MetricsRegistry = Depends(get_metrics)):
    registry.record_index_view()
    request_id = str(uuid.uuid4())
    start_time = time.perf_counter()

    body = render_index(get_settings().MODEL_HOST or "")

    finish_request(registry, request_id, request, 200, start_time)
    return HTMLResponse(content=body)


# ==================== Predict Endpoint ====================

@app.post("/sms")
@app.post("/sms/")
async def predict(
    request: Request,
    registry: MetricsRegistry = Depends(get_metrics),
    client: ModelClient = Depends(get_model_client),
):
    """
    Forward the submitted SMS to the classification service.
    Prediction latency covers only the upstream call.
    """
    registry.record_predict_call()
    request_id = str(uuid.uuid4())
    start_time = time.perf_counter()

    # 1. Parse JSON and validate
    try:
        data = await request.json()
        sms = Sms(**data)
    except (ValueError, TypeError, ValidationError) as e:
        finish_request(registry, request_id, request, 422, start_time, extra={"result": "validation_error", "error": str(e)})
        return JSONResponse(status_code=422, content={"detail": str(e)})

    # 2. Ask the model
    logger.info(f'Requesting prediction for "{sms.sms}" ...')
    prediction_start = time.perf_counter()
    try:
        result = await client.predict(sms.sms)
    except ModelServiceError as e:
        finish_request(registry, request_id, request, 500, start_time, extra={"result": "error", "error": str(e)})
        return JSONResponse(status_code=500, content={"detail": "prediction failed"})
    registry.record_prediction_latency(time.perf_counter() - prediction_start)

    logger.info(f"Prediction: {result}")
    finish_request(registry, request_id, request, 200, start_time, extra={"result": "ok"})
    return {"sms": sms.sms, "result": result}


# ==================== Heartbeat Endpoints ====================

@app.post("/sms/active/enter")
def active_enter(request: Request, page: Optional[str] = None, registry: MetricsRegistry = Depends(get_metrics)):
    """Called by the browser when the page opens."""
    response = Response(status_code=200)
    registry.session_enter(page, ensure_session(request, response))
    return response


@app.post("/sms/active/ping")
def active_ping(request: Request, page: Optional[str] = None, registry: MetricsRegistry = Depends(get_metrics)):
    """Called periodically while the page stays open."""
    response = Response(status_code=200)
    registry.session_ping(page, ensure_session(request, response))
    return response


@app.post("/sms/active/leave")
def active_leave(request: Request, page: Optional[str] = None, registry: MetricsRegistry = Depends(get_metrics)):
    """Best-effort call when the tab is closing."""
    response = Response(status_code=200)
    registry.session_leave(page, ensure_session(request, response))
    return response


# ==================== Metrics Endpoint ====================

@app.get("/metrics")
def get_metrics_text(registry: MetricsRegistry = Depends(get_metrics)):
    """Prometheus text exposition."""
    request_id = str(uuid.uuid4())
    start_time = time.perf_counter()

    body = registry.render_exposition()

    log_request(request_id, "GET", "/metrics", 200, (time.perf_counter() - start_time) * 1000)
    return Response(content=body, media_type=CONTENT_TYPE)
