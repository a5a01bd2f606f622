"""
目录实时同步

每个订阅者持有一个有界的 asyncio.Queue。publish 从任意线程调用都不会阻塞：
订阅者绑定了别的事件循环时通过 call_soon_threadsafe 投递，否则直接入队。
订阅者来不及消费时丢弃最旧的快照，快照是全量的，下一次投递即可追平。
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from typing import Dict, List, Optional, Sequence

from releasehub.schemas.version import Version


logger = logging.getLogger(__name__)

Snapshot = List[Version]

_CLOSED = object()


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Subscription:
    """订阅句柄；用完必须 close()（或用 with / async with），否则会一直留在广播列表里"""

    def __init__(
        self,
        broadcaster: "SyncBroadcaster",
        sub_id: int,
        maxsize: int,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.id = sub_id
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(maxsize, 1))
        self.loop = loop or _running_loop()
        self.closed = False
        self.dropped = 0

    def _offer(self, item: object) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(item)

    def get_nowait(self) -> Snapshot:
        item = self._queue.get_nowait()
        if item is _CLOSED:
            raise asyncio.QueueEmpty
        return item  # type: ignore[return-value]

    def drain(self) -> List[Snapshot]:
        """取出当前已到达的全部快照（按提交顺序）"""
        items: List[Snapshot] = []
        while True:
            try:
                items.append(self.get_nowait())
            except asyncio.QueueEmpty:
                return items

    async def next(self, timeout: Optional[float] = None) -> Optional[Snapshot]:
        """等待下一份快照；订阅关闭后返回 None"""
        if self.closed and self._queue.empty():
            return None
        item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            return None
        return item  # type: ignore[return-value]

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Snapshot:
        item = await self.next()
        if item is None:
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._broadcaster.unsubscribe(self)
        self._broadcaster.deliver(self, _CLOSED)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.close()


class SyncBroadcaster:
    def __init__(self, queue_size: int = 16) -> None:
        self.queue_size = queue_size
        self._subscribers: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, initial: Sequence[Version], loop: Optional[asyncio.AbstractEventLoop] = None) -> Subscription:
        sub = Subscription(self, next(self._ids), self.queue_size, loop)
        sub._offer(list(initial))
        with self._lock:
            self._subscribers[sub.id] = sub
        logger.info("sync.subscribed id=%s total=%s", sub.id, len(self._subscribers))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            removed = self._subscribers.pop(sub.id, None)
        if removed is not None:
            logger.info("sync.unsubscribed id=%s dropped=%s", sub.id, sub.dropped)

    def deliver(self, sub: Subscription, item: object) -> None:
        loop = sub.loop
        if loop is None or loop is _running_loop():
            sub._offer(item)
            return
        try:
            loop.call_soon_threadsafe(sub._offer, item)
        except RuntimeError:
            # 订阅者所在事件循环已关闭，无法再投递
            logger.warning("sync.subscriber_loop_closed id=%s", sub.id)
            self.unsubscribe(sub)

    def publish(self, snapshot: Sequence[Version]) -> None:
        """向所有订阅者投递同一份全量快照；调用方负责按提交顺序调用"""
        with self._lock:
            targets = list(self._subscribers.values())
        frozen = list(snapshot)
        for sub in targets:
            self.deliver(sub, list(frozen))
        logger.debug("sync.published versions=%s subscribers=%s", len(frozen), len(targets))
