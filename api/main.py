"""
FastAPI Application: producer surface for the background job pipelines.

Provides:
- Email enqueue endpoint (fire-and-forget, 202 Accepted)
- Click ingestion endpoint capturing the caller's request context
- Health and dispatcher stats
"""
from __future__ import annotations

import structlog
from datetime import datetime, timezone
from contextlib import asynccontextmanager

# Load .env before any config is read
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException, Request

from config.settings import get_settings
from job_queue.background import get_background_jobs
from models.schemas import ClickTrackingData, EmailRequest, UNKNOWN

logger = structlog.get_logger()

SESSION_HEADER = "X-Session-Id"
SESSION_COOKIE = "session_id"


@asynccontextmanager
async def lifespan(app: FastAPI):
    jobs = get_background_jobs()
    await jobs.start()
    logger.info("api_started", app=get_settings().app_name)
    yield
    await jobs.stop()
    await jobs.click_handler.geolocation.close()
    await jobs.email_handler.provider.close()
    logger.info("api_stopped")


app = FastAPI(title="Shortly", version="1.0.0", lifespan=lifespan)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def _tracking_data(request: Request) -> ClickTrackingData:
    params = request.query_params
    return ClickTrackingData(
        ip_address=_client_ip(request),
        session_id=request.headers.get(SESSION_HEADER) or request.cookies.get(SESSION_COOKIE, ""),
        user_agent=request.headers.get("User-Agent") or UNKNOWN,
        referrer=request.headers.get("Referer"),
        utm_source=params.get("utm_source"),
        utm_medium=params.get("utm_medium"),
        utm_campaign=params.get("utm_campaign"),
        utm_term=params.get("utm_term"),
        utm_content=params.get("utm_content"),
    )


@app.get("/health")
async def health():
    jobs = get_background_jobs()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "dispatchers": jobs.stats(),
    }


# ══════════════════════════════════════════════════════════════
#  EMAIL
# ══════════════════════════════════════════════════════════════

@app.post("/api/v1/emails", status_code=202)
async def enqueue_email(req: EmailRequest):
    jobs = get_background_jobs()
    jobs.enqueue_email(req)
    return {"status": "enqueued", "to": req.to, "queue_depth": jobs.email_queue.depth}


# ══════════════════════════════════════════════════════════════
#  CLICKS
# ══════════════════════════════════════════════════════════════

@app.post("/api/v1/clicks/{redirect_id}", status_code=202)
async def track_click(redirect_id: int, request: Request):
    if redirect_id < 1:
        raise HTTPException(400, "redirect_id must be positive")
    jobs = get_background_jobs()
    jobs.enqueue_click(redirect_id, _tracking_data(request))
    return {"status": "enqueued", "redirect_id": redirect_id}


@app.get("/api/v1/clicks/{redirect_id}")
async def click_summary(redirect_id: int, count: int = 10):
    jobs = get_background_jobs()
    handler = jobs.click_handler
    try:
        recent = await handler.click_store.get_recent_clicks(redirect_id, count)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {
        "redirect_id": redirect_id,
        "total_clicks": await handler.usage_store.get_click_count(redirect_id),
        "recent": [c.model_dump(mode="json") for c in recent],
    }


# ══════════════════════════════════════════════════════════════
#  Entry Point
# ══════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
