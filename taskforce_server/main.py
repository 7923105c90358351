from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

import uvicorn
from fastapi import FastAPI

from taskforce_server.api.routes import build_router
from taskforce_server.security.auth import SERVER_API_KEY, bearer_key_checker
from taskforce_server.tasks.manager import TaskManager

logger = logging.getLogger(__name__)


def create_app(
    api_key: Optional[str] = SERVER_API_KEY,
    steps: Optional[int] = None,
    stream_tick: Optional[float] = None,
) -> FastAPI:
    if steps is None:
        steps = int(os.getenv("TASKFORCE_SERVER_STEPS", "2"))
    if stream_tick is None:
        stream_tick = float(os.getenv("TASKFORCE_SERVER_STREAM_TICK_SECONDS", "0.5"))
    task_ttl = int(os.getenv("TASKFORCE_SERVER_TASK_TTL_SECONDS", "3600"))

    mgr = TaskManager(steps=steps, task_ttl_seconds=task_ttl)

    app = FastAPI(title="Task API (reference)", version="1.0.0")
    app.state.manager = mgr
    app.include_router(build_router(mgr, bearer_key_checker(api_key), stream_tick=stream_tick))

    @app.on_event("startup")
    async def _startup():
        app.state._stop = False

        async def sweeper():
            while not app.state._stop:
                await mgr.evict_finished()
                await asyncio.sleep(30)

        app.state._sweeper_task = asyncio.create_task(sweeper())

    @app.on_event("shutdown")
    async def _shutdown():
        app.state._stop = True
        t = getattr(app.state, "_sweeper_task", None)
        if t:
            t.cancel()

    return app


def run() -> None:
    logging.basicConfig(level=os.getenv("TASKFORCE_SERVER_LOG_LEVEL", "INFO"))
    host = os.getenv("TASKFORCE_SERVER_HOST", "127.0.0.1")
    port = int(os.getenv("TASKFORCE_SERVER_PORT", "8000"))
    logger.info("serving task API on %s:%d", host, port)
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    run()
