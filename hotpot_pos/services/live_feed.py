"""
进程内变更通知与时段看板刷新

- ChangeBus：按主题（orders / store）发布变更，订阅者各自持有 Subscription
- SlotBoardWatcher：固定间隔轮询 + 收到变更后去抖刷新，stop() 时取消计时并退订

发布方可能在线程池中（同步路由），因此投递一律经 call_soon_threadsafe。
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

TOPIC_ORDERS = "orders"
TOPIC_STORE = "store"


class Subscription:
    """单个订阅句柄，close() 后不再收到事件"""

    def __init__(self, bus: "ChangeBus", topics: Iterable[str], loop: asyncio.AbstractEventLoop):
        self._bus = bus
        self.topics = set(topics)
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _deliver(self, event: Dict[str, Any]):
        if not self.closed:
            self.loop.call_soon_threadsafe(self.queue.put_nowait, event)

    async def get(self) -> Dict[str, Any]:
        return await self.queue.get()

    def close(self):
        if not self.closed:
            self.closed = True
            self._bus._remove(self)


class ChangeBus:
    """进程内发布/订阅"""

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, topics: Iterable[str]) -> Subscription:
        """必须在事件循环内调用"""
        sub = Subscription(self, topics, asyncio.get_running_loop())
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: Subscription):
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, topic: str, payload: Optional[Dict[str, Any]] = None):
        event = {"topic": topic, "payload": payload or {}}
        with self._lock:
            targets = [s for s in self._subscriptions if topic in s.topics]
        for sub in targets:
            try:
                sub._deliver(event)
            except RuntimeError:
                # 订阅方的事件循环已关闭
                logger.debug("dropping event for closed loop")


class SlotBoardWatcher:
    """
    时段看板的刷新者，由视图（SSE 连接）持有

    Args:
        bus: 变更总线
        refresh: 同步函数，返回最新快照（在线程中执行）
        poll_interval: 轮询间隔（秒）
        debounce: 变更去抖延迟（秒），期间的多次变更合并为一次刷新
        topics: 关注的主题
    """

    def __init__(self, bus: ChangeBus, refresh: Callable[[], Any], *, poll_interval: float,
                 debounce: float, topics: Iterable[str] = (TOPIC_ORDERS, TOPIC_STORE)):
        self.bus = bus
        self.refresh = refresh
        self.poll_interval = poll_interval
        self.debounce = debounce
        self.topics = tuple(topics)
        self.updates: asyncio.Queue = asyncio.Queue()
        self._subscription: Optional[Subscription] = None
        self._tasks: List[asyncio.Task] = []
        self._pending: Optional[asyncio.Task] = None
        self.running = False

    async def start(self):
        if self.running:
            return
        self._subscription = self.bus.subscribe(self.topics)
        self._tasks = [
            asyncio.create_task(self._poll_loop()),
            asyncio.create_task(self._listen_loop()),
        ]
        self.running = True

    async def stop(self):
        """取消计时器与去抖任务，并退订"""
        self.running = False
        tasks = list(self._tasks)
        if self._pending is not None:
            tasks.append(self._pending)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks = []
        self._pending = None
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    async def _emit(self):
        try:
            snapshot = await asyncio.to_thread(self.refresh)
        except Exception:
            logger.exception("slot board refresh failed")
            return
        await self.updates.put(snapshot)

    async def _poll_loop(self):
        while True:
            await self._emit()
            await asyncio.sleep(self.poll_interval)

    async def _listen_loop(self):
        while True:
            await self._subscription.get()
            if self._pending is not None and not self._pending.done():
                self._pending.cancel()
            self._pending = asyncio.create_task(self._debounced_emit())

    async def _debounced_emit(self):
        await asyncio.sleep(self.debounce)
        await self._emit()


# 全局变更总线
change_bus = ChangeBus()
