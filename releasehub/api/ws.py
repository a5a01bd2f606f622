from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from releasehub.core.config import Settings
from releasehub.schemas.version import Version
from releasehub.services.broadcaster import Subscription
from releasehub.services.ws_manager import FeedConnection, manager

logger = logging.getLogger(__name__)

router = APIRouter()


def catalog_message(snapshot: Sequence[Version]) -> dict[str, Any]:
    return {"type": "catalog", "versions": [v.wire() for v in snapshot]}


async def _pump(websocket: WebSocket, subscription: Subscription) -> None:
    try:
        async for snapshot in subscription:
            await websocket.send_json(catalog_message(snapshot))
    except (WebSocketDisconnect, RuntimeError):
        # 对端已关闭
        return


async def _listen(conn: FeedConnection, settings: Settings) -> None:
    websocket = conn.websocket
    while True:
        try:
            data = await asyncio.wait_for(websocket.receive_json(), timeout=settings.ws_heartbeat_timeout_seconds)
        except asyncio.TimeoutError:
            if conn.silent_for() > settings.ws_heartbeat_timeout_seconds:
                logger.info("ws.heartbeat_timeout id=%s", conn.subscription_id)
                await websocket.close(code=4408)
                return
            continue
        except WebSocketDisconnect:
            return
        # 读取消息并限流
        if not conn.allow_message(settings.ws_max_messages_per_minute):
            await websocket.send_json({"type": "error", "reason": "rate_limit"})
            continue
        msg_type = data.get("type") if isinstance(data, dict) else None
        if msg_type == "ping":
            conn.mark_alive()
            await websocket.send_json({"type": "pong"})
        else:
            await websocket.send_json({"type": "error", "reason": "unknown_type"})


@router.websocket("/ws/versions")
async def catalog_feed(websocket: WebSocket) -> None:
    """推送版本目录：先发当前快照，之后每次变更推送一次全量快照"""
    services = websocket.app.state.services
    settings: Settings = services.settings
    conn = await manager.connect(websocket)
    subscription = await run_in_threadpool(services.store.subscribe, asyncio.get_running_loop())
    conn.subscription_id = subscription.id
    try:
        await websocket.send_json({"type": "welcome", "subscription": subscription.id})
        tasks = {
            asyncio.create_task(_pump(websocket, subscription)),
            asyncio.create_task(_listen(conn, settings)),
        }
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.warning("ws.feed_error id=%s error=%s", subscription.id, task.exception())
    except WebSocketDisconnect:
        pass
    finally:
        subscription.close()
        manager.disconnect(websocket)
