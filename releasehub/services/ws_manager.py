from __future__ import annotations

from dataclasses import dataclass, field
from time import monotonic
from typing import Dict, Optional

from fastapi import WebSocket


@dataclass
class FeedConnection:
    """一条目录推送连接：心跳时间与每分钟消息计数"""
    websocket: WebSocket
    subscription_id: Optional[int] = None
    last_seen: float = field(default_factory=lambda: monotonic())
    window_start: float = field(default_factory=lambda: monotonic())
    window_count: int = 0

    def mark_alive(self) -> None:
        self.last_seen = monotonic()

    def silent_for(self) -> float:
        return monotonic() - self.last_seen

    def allow_message(self, max_per_minute: int) -> bool:
        now = monotonic()
        if now - self.window_start >= 60:
            self.window_start = now
            self.window_count = 0
        self.window_count += 1
        return self.window_count <= max_per_minute


class ConnectionManager:
    def __init__(self) -> None:
        self._connections: Dict[WebSocket, FeedConnection] = {}

    async def connect(self, websocket: WebSocket) -> FeedConnection:
        await websocket.accept()
        conn = FeedConnection(websocket)
        self._connections[websocket] = conn
        return conn

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.pop(websocket, None)

    @property
    def connection_count(self) -> int:
        return len(self._connections)


manager = ConnectionManager()
