from __future__ import annotations

import logging
import uuid
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse

from .config import configure_logging, get_settings
from .models import FileUpdate, ProjectFile, SessionState
from .pipeline import BuildPipeline
from .session import (
    STEP_KEYS,
    BuildSession,
    SessionBusyError,
    SessionError,
    StepNotReadyError,
)
from .sse import format_sse
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)


def create_app(
    upstream_client: UpstreamClient | None = None,
    session: BuildSession | None = None,
) -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    upstream = upstream_client or UpstreamClient.from_settings(settings)
    state = session or BuildSession()
    pipeline = BuildPipeline(state, upstream)
    app = FastAPI(title="Linux Build Agent")

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok", "scope": "buildagent"}

    @app.get("/upstream-health")
    async def upstream_health():
        ok = await upstream.ping()
        return {"status": "ok" if ok else "degraded", "upstream": ok}

    @app.get("/v1/session", response_model=SessionState)
    async def get_session():
        return state.snapshot()

    @app.post("/v1/session/reset", response_model=SessionState)
    async def reset_session():
        try:
            state.reset()
        except SessionBusyError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return state.snapshot()

    @app.get("/v1/files/{path:path}", response_model=ProjectFile)
    async def get_file(path: str):
        project_file = state.get_file(path)
        if project_file is None:
            raise HTTPException(status_code=404, detail="File not found")
        return project_file

    @app.put("/v1/files/{path:path}", response_model=ProjectFile)
    async def update_file(path: str, update: FileUpdate):
        try:
            return state.update_file(path, update.content)
        except KeyError:
            raise HTTPException(status_code=404, detail="File not found")
        except SessionBusyError as exc:
            raise HTTPException(status_code=409, detail=str(exc))

    @app.post("/v1/steps/{step_key}")
    async def run_step(step_key: str):
        step_name = STEP_KEYS.get(step_key)
        if step_name is None:
            raise HTTPException(status_code=404, detail="Unknown step")
        try:
            state.ensure_ready(step_name)
        except (SessionBusyError, StepNotReadyError) as exc:
            raise HTTPException(status_code=409, detail=str(exc))

        request_id = uuid.uuid4().hex

        async def event_stream() -> AsyncGenerator[str, None]:
            # Claimed here so a body that is never iterated cannot leave the session busy.
            try:
                state.begin(step_name)
            except SessionError as exc:
                yield format_sse(
                    "error",
                    {"message": str(exc), "stage": step_name, "request_id": request_id},
                )
                return

            logger.info("running step %r (request %s)", step_name, request_id)
            async for event, data in pipeline.run(step_name):
                yield format_sse(event, {**data, "request_id": request_id})
            yield format_sse(
                "step.done",
                {
                    "step": step_name,
                    "status": state.step(step_name).status,
                    "request_id": request_id,
                },
            )

        return StreamingResponse(
            event_stream(), media_type="text/event-stream", headers={"Cache-Control": "no-cache"}
        )

    return app
