"""FastAPI application: start, inspect and cancel scrape sessions."""
import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, ValidationError

from enforcement_scraper.config import Config, config
from enforcement_scraper.jobs.progress import ProgressBroadcaster
from enforcement_scraper.jobs.session import RunConfig, SessionStatus
from enforcement_scraper.jobs.sources import build_source
from enforcement_scraper.jobs.supervisor import SessionSupervisor
from enforcement_scraper.logging_conf import setup_logging
from enforcement_scraper.parse.models import Agency, DataType
from enforcement_scraper.store.backends import create_store

logger = logging.getLogger(__name__)

app = FastAPI(title="Enforcement Scraper API", version="0.1.0")

API_KEY_HEADER = APIKeyHeader(name="X-API-KEY", auto_error=False)


def verify_api_key(api_key: Optional[str] = Depends(API_KEY_HEADER)) -> bool:
    """Verify API key if configured."""
    expected_key = config.API_KEY
    if expected_key:
        if not api_key or api_key != expected_key:
            raise HTTPException(status_code=403, detail="Invalid API key")
    return True


_store = None
_broadcaster: Optional[ProgressBroadcaster] = None
_supervisor: Optional[SessionSupervisor] = None


def get_store():
    global _store
    if _store is None:
        _store = create_store()
    return _store


def get_broadcaster() -> ProgressBroadcaster:
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = ProgressBroadcaster()
    return _broadcaster


def get_supervisor() -> SessionSupervisor:
    global _supervisor
    if _supervisor is None:
        _supervisor = SessionSupervisor(get_store(), broadcaster=get_broadcaster())
    return _supervisor


@app.on_event("startup")
async def startup():
    setup_logging()
    await get_store().initialize()


@app.on_event("shutdown")
async def shutdown():
    if _supervisor is not None:
        await _supervisor.shutdown()


class SessionRequest(BaseModel):
    """Request model for starting a session. Unset fields fall back to configuration."""

    agency: Agency = Agency.HSE
    data_type: DataType = DataType.CASE
    start_page: Optional[int] = None
    pages: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    action_types: Optional[list[str]] = None
    country: Optional[str] = None
    database: Optional[str] = None
    batch_size: Optional[int] = None
    max_page_errors: Optional[int] = None
    stop_on_existing: Optional[bool] = None
    fetch_details: Optional[bool] = None


@app.get("/health")
async def health(supervisor: SessionSupervisor = Depends(get_supervisor)):
    """Health check endpoint (no auth required)."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "store_backend": config.STORE_BACKEND,
        "running_sessions": len(supervisor.running()),
    }


@app.post("/sessions", status_code=202)
async def start_session(
    request: SessionRequest,
    _: bool = Depends(verify_api_key),
    supervisor: SessionSupervisor = Depends(get_supervisor),
):
    try:
        run_config = RunConfig.from_config(
            agency=request.agency,
            data_type=request.data_type,
            start_page=request.start_page,
            max_pages=request.pages,
            date_from=request.date_from,
            date_to=request.date_to,
            action_types=request.action_types,
            country=request.country,
            database=request.database,
            batch_size=request.batch_size,
            max_page_errors=request.max_page_errors,
            stop_on_existing=request.stop_on_existing,
            fetch_details=request.fetch_details,
        )
        build_source(run_config)
    except (ValidationError, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    session = await supervisor.start(run_config)
    return session.model_dump(mode="json")


@app.get("/sessions")
async def list_sessions(
    status: Optional[SessionStatus] = None,
    limit: int = 50,
    _: bool = Depends(verify_api_key),
    store=Depends(get_store),
):
    sessions = await store.list_sessions(status=status, limit=limit)
    return {"sessions": [s.summary() for s in sessions]}


@app.get("/sessions/{session_id}")
async def get_session(session_id: str, _: bool = Depends(verify_api_key), store=Depends(get_store)):
    session = await store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {**session.model_dump(mode="json"), "summary": session.summary()}


@app.post("/sessions/{session_id}/cancel")
async def cancel_session(
    session_id: str,
    _: bool = Depends(verify_api_key),
    store=Depends(get_store),
    supervisor: SessionSupervisor = Depends(get_supervisor),
):
    session = await store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    if not supervisor.cancel(session_id):
        raise HTTPException(status_code=409, detail=f"Session is not running (status: {session.status.value})")
    return {"session_id": session_id, "cancel_requested": True}


@app.get("/sessions/{session_id}/logs")
async def session_logs(session_id: str, _: bool = Depends(verify_api_key), store=Depends(get_store)):
    if await store.get_session(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    entries = await store.logs_for_session(session_id)
    return {"logs": [e.model_dump(mode="json") for e in entries]}


@app.get("/progress")
async def progress(
    limit: int = 100,
    session_id: Optional[str] = None,
    _: bool = Depends(verify_api_key),
    broadcaster: ProgressBroadcaster = Depends(get_broadcaster),
):
    """Latest progress events from the JSONL sink."""
    return {"events": await broadcaster.tail(limit=limit, session_id=session_id)}


if __name__ == "__main__":
    import uvicorn

    Config.validate()
    uvicorn.run(app, host="0.0.0.0", port=8000)
