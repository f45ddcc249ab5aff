import asyncio
import json
from typing import Any, Dict, List

from sanic import Sanic, response
from sanic.log import logger

from prstatus.poller.types import ViewModel


def sse_frame(event: str, payload: Dict[str, Any]) -> str:
    data = json.dumps(payload, separators=(",", ":"))
    return f"event: {event}\ndata: {data}\n\n"


class ViewBroadcaster:
    """
    Fans published views out to event stream clients.

    Every client owns a bounded queue of encoded frames. A client that falls
    behind loses its oldest frames; the newest view is always delivered.
    """

    def __init__(self, backlog: int = 100):
        self.backlog = max(1, int(backlog))
        self._queues: List[asyncio.Queue] = []

    @property
    def client_count(self) -> int:
        return len(self._queues)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.backlog)
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def publish(self, view: ViewModel) -> int:
        frame = sse_frame("state_update", view_payload(view))
        for queue in self._queues:
            while queue.full():
                queue.get_nowait()
            queue.put_nowait(frame)
        return len(self._queues)


def view_payload(view: ViewModel) -> Dict[str, Any]:
    payload = view.model_dump(mode="json")
    payload["badge_visible"] = view.badge_visible
    payload["badge_text"] = view.badge_text
    payload["counts"] = (
        {category.value: count for category, count in view.buckets.counts().items()}
        if view.buckets is not None
        else None
    )
    return payload


def _state_context(app) -> Dict[str, Any]:
    scheduler = app.ctx.scheduler
    return {
        "phase": scheduler.phase.value,
        "interval_seconds": scheduler.interval_seconds,
        "notification_filters": sorted(
            r.value for r in scheduler.preferences.notification_filters
        ),
        "last_modified": scheduler.last_modified,
        "view": view_payload(scheduler.view),
    }


async def _refresh_context(app) -> Dict[str, Any]:
    logger.debug("Manual refresh requested")
    view = await app.ctx.scheduler.refresh()
    return {"view": view_payload(view)}


def register_state_routes(app: Sanic) -> None:
    @app.get("/state")
    async def state(_request):
        return response.json(_state_context(app))

    @app.post("/refresh")
    async def refresh(_request):
        return response.json(await _refresh_context(app))

    @app.get("/state/stream")
    async def state_stream(_request):
        broadcaster: ViewBroadcaster = app.ctx.view_broadcaster
        queue = broadcaster.subscribe()
        logger.debug("Stream client connected (%d)", broadcaster.client_count)

        async def stream_fn(stream_response):
            try:
                await stream_response.write(
                    sse_frame("ready", view_payload(app.ctx.scheduler.view))
                )
                while True:
                    try:
                        frame = await asyncio.wait_for(queue.get(), timeout=20.0)
                    except asyncio.TimeoutError:
                        frame = ": keepalive\n\n"
                    await stream_response.write(frame)
            finally:
                broadcaster.unsubscribe(queue)

        return response.ResponseStream(
            stream_fn,
            content_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
            },
        )
