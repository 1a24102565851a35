"""
时段看板的 Server-Sent Events 推送
每个连接持有一个 SlotBoardWatcher，连接断开时停止并退订
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse

from ...config.settings import Settings
from ...services.availability_service import AvailabilityService
from ...services.live_feed import ChangeBus, SlotBoardWatcher
from ..deps import get_availability_service, get_bus, get_clock, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()

KEEPALIVE_SECONDS = 15


def format_sse(data, event: str = "slots") -> str:
    payload = json.dumps(jsonable_encoder(data), ensure_ascii=False)
    return f"event: {event}\ndata: {payload}\n\n"


@router.get("/slots")
async def stream_slots(
    request: Request,
    service: AvailabilityService = Depends(get_availability_service),
    bus: ChangeBus = Depends(get_bus),
    config: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """连上即推送一次快照，之后按轮询间隔与订单/营业状态变更推送"""
    watcher = SlotBoardWatcher(
        bus,
        lambda: service.snapshot(clock()),
        poll_interval=config.poll_interval_seconds,
        debounce=config.change_debounce_ms / 1000,
    )

    async def event_stream():
        await watcher.start()
        try:
            while not await request.is_disconnected():
                try:
                    snapshot = await asyncio.wait_for(watcher.updates.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield format_sse(snapshot)
        finally:
            await watcher.stop()
            logger.debug("slot stream closed")

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
