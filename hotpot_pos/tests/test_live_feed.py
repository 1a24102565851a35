import asyncio
import threading

from ..services.live_feed import TOPIC_ORDERS, TOPIC_STORE, ChangeBus, SlotBoardWatcher


class Counter:
    def __init__(self):
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
            return {"refresh": self.calls}


class TestChangeBus:
    """变更总线测试"""

    def test_topic_filter_and_close(self):
        bus = ChangeBus()

        async def scenario():
            orders = bus.subscribe([TOPIC_ORDERS])
            store = bus.subscribe([TOPIC_STORE])
            assert bus.subscriber_count == 2

            bus.publish(TOPIC_STORE, {"is_open": False})
            event = await asyncio.wait_for(store.get(), timeout=1)
            assert event["payload"] == {"is_open": False}
            assert orders.queue.empty()

            orders.close()
            store.close()
            assert bus.subscriber_count == 0

        asyncio.run(scenario())

    def test_publish_from_worker_thread(self):
        bus = ChangeBus()

        async def scenario():
            sub = bus.subscribe([TOPIC_ORDERS])
            await asyncio.to_thread(bus.publish, TOPIC_ORDERS, {"order_id": 1})
            event = await asyncio.wait_for(sub.get(), timeout=1)
            sub.close()
            return event

        assert asyncio.run(scenario())["payload"] == {"order_id": 1}


class TestSlotBoardWatcher:
    """时段看板刷新测试"""

    def test_burst_coalesces_into_one_refresh(self):
        bus = ChangeBus()
        refresh = Counter()

        async def scenario():
            watcher = SlotBoardWatcher(bus, refresh, poll_interval=60, debounce=0.05)
            await watcher.start()
            first = await asyncio.wait_for(watcher.updates.get(), timeout=1)
            assert first == {"refresh": 1}

            for i in range(5):
                bus.publish(TOPIC_ORDERS, {"order_id": i})
                await asyncio.sleep(0.01)

            second = await asyncio.wait_for(watcher.updates.get(), timeout=1)
            await asyncio.sleep(0.2)
            await watcher.stop()
            return second

        assert asyncio.run(scenario()) == {"refresh": 2}
        assert refresh.calls == 2

    def test_polls_without_changes(self):
        bus = ChangeBus()
        refresh = Counter()

        async def scenario():
            watcher = SlotBoardWatcher(bus, refresh, poll_interval=0.02, debounce=1)
            await watcher.start()
            for _ in range(3):
                await asyncio.wait_for(watcher.updates.get(), timeout=1)
            await watcher.stop()

        asyncio.run(scenario())
        assert refresh.calls >= 3

    def test_stop_unsubscribes_and_cancels(self):
        bus = ChangeBus()
        refresh = Counter()

        async def scenario():
            watcher = SlotBoardWatcher(bus, refresh, poll_interval=60, debounce=0.05)
            await watcher.start()
            await asyncio.wait_for(watcher.updates.get(), timeout=1)
            assert bus.subscriber_count == 1

            # 去抖期间停止：挂起的刷新被取消
            bus.publish(TOPIC_STORE, {"is_open": True})
            await asyncio.sleep(0.01)
            await watcher.stop()
            assert bus.subscriber_count == 0
            assert watcher.running is False

            bus.publish(TOPIC_STORE, {"is_open": False})
            await asyncio.sleep(0.1)

        asyncio.run(scenario())
        assert refresh.calls == 1

    def test_failed_refresh_keeps_watching(self):
        bus = ChangeBus()
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("db busy")
            return {"ok": True}

        async def scenario():
            watcher = SlotBoardWatcher(bus, flaky, poll_interval=60, debounce=0.01)
            await watcher.start()
            await asyncio.sleep(0.05)
            bus.publish(TOPIC_ORDERS)
            update = await asyncio.wait_for(watcher.updates.get(), timeout=1)
            await watcher.stop()
            return update

        assert asyncio.run(scenario()) == {"ok": True}
