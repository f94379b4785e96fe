"""FastAPI application exposing the repository recommender."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Iterable
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from pydantic import BaseModel, Field

from reporec.avro_utils import assert_valid, load_named_schema
from reporec.config import load_settings
from reporec.engine import Recommender
from reporec.types import EmptyFeedbackError, Recommendation

# ----------------------------------------------------------------------------
# Logging setup
# ----------------------------------------------------------------------------
logger = logging.getLogger("service.app")
if not logger.handlers:
    # Configure root logger once (uvicorn injects its own handlers in prod)
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

# ----------------------------------------------------------------------------
# Metrics
# ----------------------------------------------------------------------------
reqs = Counter("recommend_requests_total", "Recommendation requests", ["status"])
lat = Histogram(
    "recommend_latency_seconds",
    "End-to-end request latency",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.2, 0.5, 1, 2),
)
SCORING_ERRORS = Counter(
    "recommend_scoring_errors_total",
    "Unexpected errors raised while scoring a request",
)
EMPTY_FEEDBACK = Counter(
    "recommend_empty_feedback_total",
    "Requests where no supplied repository was known to the model",
)
STORE_ITEMS = Gauge("factor_store_items", "Repositories in the loaded factor store")
STORE_FACTORS = Gauge("factor_store_dimension", "Latent factor dimension of the loaded store")
INFLIGHT = Gauge("http_inflight_requests", "In-flight HTTP requests")
REJECTS = Counter("http_backpressure_rejections_total", "Requests rejected due to backpressure")

# ----------------------------------------------------------------------------
# Static configuration
# ----------------------------------------------------------------------------
settings = load_settings()
RESPONSE_SCHEMA = load_named_schema("RecoResponse")

# Limit the number of concurrent requests we execute.
_sem = asyncio.BoundedSemaphore(settings.max_concurrency)


def _publish_store_metrics(recommender: Recommender | None) -> None:
    STORE_ITEMS.set(recommender.store.size() if recommender else 0)
    STORE_FACTORS.set(recommender.store.dimension() if recommender else 0)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # LoadError / ConfigError propagate: the server must not start half-loaded.
    recommender = Recommender.from_settings(settings)
    app.state.recommender = recommender
    _publish_store_metrics(recommender)
    logger.info(
        "%s ready (confidence=%s, regularization=%s)",
        settings.service_name,
        settings.confidence,
        settings.regularization,
    )
    try:
        yield
    finally:
        app.state.recommender = None
        _publish_store_metrics(None)


app = FastAPI(title=settings.service_name, lifespan=lifespan)


class RecommendRequest(BaseModel):
    items: list[str] = Field(default_factory=list, description="Repositories the caller already starred")
    n: int | None = Field(default=None, description="Number of recommendations")


# ----------------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------------
def loaded_recommender(request: Request) -> Recommender | None:
    """The recommender built at startup, or None outside the app lifespan."""

    return getattr(request.app.state, "recommender", None)


def require_recommender(recommender: Recommender | None = Depends(loaded_recommender)) -> Recommender:
    if recommender is None:
        raise HTTPException(status_code=503, detail="Recommender not loaded")
    return recommender


# ----------------------------------------------------------------------------
# Recommendation helpers
# ----------------------------------------------------------------------------
def _clamp_n(n: int | None) -> int:
    if n is None:
        n = settings.default_n
    return max(0, min(int(n), settings.max_n))


def _recommend_for_items(
    recommender: Recommender, items: list[str], n: int | None
) -> tuple[list[Recommendation], int]:
    """Generate recommendations and return (recommendations, resolved_feedback_size)."""

    k = _clamp_n(n)
    feedback = recommender.resolve(items)
    try:
        return recommender.recommend_resolved(feedback, k, received=len(items)), len(feedback)
    except EmptyFeedbackError as exc:
        EMPTY_FEEDBACK.inc()
        raise HTTPException(
            status_code=422,
            detail={"error": "no_usable_feedback", "received": exc.received},
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive logging path
        SCORING_ERRORS.inc()
        logger.exception("Recommendation failure for %d feedback item(s)", len(feedback))
        raise HTTPException(status_code=500, detail="Failed to score recommendation") from exc


def _response_payload(recs: list[Recommendation], feedback_size: int) -> dict:
    payload = {
        "items": [rec.as_dict() for rec in recs],
        "n": len(recs),
        "feedback_size": feedback_size,
        "generated_at": int(time.time()),
    }
    # Enforce Avro schema at the service boundary
    assert_valid(RESPONSE_SCHEMA, payload)
    return payload


def _as_plain_text(recs: Iterable[Recommendation]) -> str:
    """Serialize repository names for plaintext responses."""

    return ",".join(rec.repository for rec in recs)


# ----------------------------------------------------------------------------
# Routes
# ----------------------------------------------------------------------------
@app.get("/health", response_model=dict)
def health(recommender: Recommender | None = Depends(loaded_recommender)) -> dict:
    """Lightweight health endpoint consumed by probes."""

    if recommender is None:
        return {"status": "loading", "items": 0, "factors": 0}
    store = recommender.store
    return {"status": "ok", "items": store.size(), "factors": store.dimension()}


@app.get("/healthz", include_in_schema=False, response_class=PlainTextResponse)
@app.get("/healthz/", include_in_schema=False, response_class=PlainTextResponse)
def healthz() -> str:
    return "ok"


@app.post("/recommend")
def recommend(body: RecommendRequest, recommender: Recommender = Depends(require_recommender)):
    recs, feedback_size = _recommend_for_items(recommender, body.items, body.n)
    return _response_payload(recs, feedback_size)


@app.get("/recommend/plain", response_class=PlainTextResponse)
def recommend_plain(
    items: list[str] = Query(default=[]),
    n: int | None = None,
    recommender: Recommender = Depends(require_recommender),
) -> str:
    recs, feedback_size = _recommend_for_items(recommender, items, n)
    _response_payload(recs, feedback_size)
    return _as_plain_text(recs)


@app.get("/items/{owner}/{name}")
def item(owner: str, name: str, recommender: Recommender = Depends(require_recommender)) -> dict:
    """Report whether ``owner/name`` is known to the loaded model."""

    repository = f"{owner}/{name}"
    index = recommender.store.lookup(repository)


@app.get("/metrics")
def metrics():
    """Prometheus exposition endpoint."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.middleware("http")
async def backpressure_guard(request: Request, call_next):
    """Apply bounded concurrency and surface backpressure metrics."""

    try:
        # Non-blocking-ish acquire (tiny timeout) -> reject fast if saturated
        await asyncio.wait_for(_sem.acquire(), timeout=settings.acquire_timeout_sec)
    except TimeoutError:
        REJECTS.inc()
        return JSONResponse({"detail": "Backpressure: server busy"}, status_code=503)

    INFLIGHT.inc()
    try:
        with lat.time():
            resp = await call_next(request)
        reqs.labels(status=str(getattr(resp, "status_code", 200))).inc()
        return resp
    finally:
        INFLIGHT.dec()
        _sem.release()
