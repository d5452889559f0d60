from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, List, Union

from fastapi import Body, Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .auth import require_admin
from .config import reload_settings, settings
from .dispatcher import EventDispatcher
from .logging_setup import RequestLogMiddleware, init_logging
from .metrics import LAT, REQS, router as metrics_router
from .middleware import BufferedEventResponse, StarletteEventRequest
from .types import TargetUpdate

logger = logging.getLogger(__name__)


class Health(BaseModel):
    status: str
    time: str


def _seed_targets(dispatcher: EventDispatcher, raw: str) -> None:
    if not raw.strip():
        return
    try:
        targets = json.loads(raw)
    except ValueError as exc:
        raise RuntimeError(f"TARGETS_JSON is not valid JSON: {exc}") from exc
    if not dispatcher.add_target(targets):
        logger.warning("Some targets from TARGETS_JSON were not registered")


def build_dispatcher() -> EventDispatcher:
    dispatcher = EventDispatcher(
        max_listeners=settings.MAX_LISTENERS,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    _seed_targets(dispatcher, settings.TARGETS_JSON)
    return dispatcher


@asynccontextmanager
async def lifespan(app: FastAPI):
    reload_settings()
    app.state.dispatcher = build_dispatcher()
    _mount_inbound(app, settings.EVENTS_PATH)
    logger.info("Dispatcher ready with %d targets", len(app.state.dispatcher.targets))
    yield


def get_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.dispatcher


async def receive_event(request: Request):
    dispatcher = get_dispatcher(request)
    out = BufferedEventResponse()
    await dispatcher.create_middleware()(StarletteEventRequest(request), out)
    return out.to_starlette()


def _mount_inbound(app: FastAPI, path: str) -> None:
    """(Re)register the inbound endpoint at the path read on startup."""
    app.router.routes[:] = [
        route for route in app.router.routes if getattr(route, "endpoint", None) is not receive_event
    ]
    app.add_api_route(path, receive_event, methods=["POST"], include_in_schema=False)


init_logging(settings.LOG_LEVEL)

app = FastAPI(title="EventRelay", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLogMiddleware)
app.include_router(metrics_router())

origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _metrics(request: Request, call_next):
    method = request.method
    path = request.url.path
    start = time.time()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration = time.time() - start
        REQS.labels(method, path, str(status_code)).inc()
        LAT.labels(method, path).observe(duration)


@app.get("/health", response_model=Health)
def health():
    return Health(status="ok", time=datetime.utcnow().isoformat())


@app.get("/targets")
def list_targets(
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    _=Depends(require_admin),
):
    return {"targets": [target.model_dump() for target in dispatcher.targets.all()]}


@app.post("/targets", status_code=201)
def add_targets(
    response: Response,
    payload: Any = Body(...),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    _=Depends(require_admin),
):
    added = dispatcher.add_target(payload)
    if not added:
        response.status_code = 409
    return {"added": added}


@app.get("/targets/{name}")
def get_target(
    name: str,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    _=Depends(require_admin),
):
    target = dispatcher.targets.get(name)
    if target is None:
        raise HTTPException(status_code=404, detail="unknown target")
    return target.model_dump()


@app.patch("/targets/{name}")
def update_target(
    name: str,
    update: TargetUpdate,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    _=Depends(require_admin),
):
    if not dispatcher.update_target(name, update):
        raise HTTPException(status_code=404, detail="unknown target")
    return dispatcher.targets.get(name).model_dump()


@app.delete("/targets/{name}")
def remove_target(
    name: str,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    _=Depends(require_admin),
):
    if not dispatcher.remove_target(name):
        raise HTTPException(status_code=404, detail="unknown target")
    return {"removed": name}


@app.post("/targets/{name}/events")
def add_target_events(
    name: str,
    events: Union[str, List[str]] = Body(...),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    _=Depends(require_admin),
):
    if not dispatcher.add_event_to_target(name, events):
        raise HTTPException(status_code=404, detail="unknown target")
    return dispatcher.targets.get(name).model_dump()


@app.post("/emit/{event_name}")
async def emit_event(
    event_name: str,
    data: Any = Body(default=None),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    _=Depends(require_admin),
):
    result = await dispatcher.emit(event_name, data)
    return result.to_dict()

