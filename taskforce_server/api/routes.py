from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from taskforce_common.schemas import SubmitTaskRequest, SubmitTaskResponse
from taskforce_server.tasks.manager import TaskManager


def build_router(mgr: TaskManager, require_api_key: Callable[..., None], stream_tick: float = 0.5) -> APIRouter:
    r = APIRouter(dependencies=[Depends(require_api_key)])

    @r.post("/run", response_model=SubmitTaskResponse, status_code=202)
    async def submit_task(req: SubmitTaskRequest):
        task_id = await mgr.submit(req.prompt, req.options)
        return SubmitTaskResponse(task_id=task_id)

    @r.get("/status/{task_id}")
    async def get_status(task_id: str):
        st = await mgr.observe(task_id)
        if not st:
            raise HTTPException(status_code=404, detail="Task not found")
        return JSONResponse(st.to_wire())

    @r.get("/stream/{task_id}")
    async def stream_status(task_id: str):
        if not await mgr.get(task_id):
            raise HTTPException(status_code=404, detail="Task not found")
        return StreamingResponse(
            mgr.events(task_id, tick=stream_tick),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    return r
