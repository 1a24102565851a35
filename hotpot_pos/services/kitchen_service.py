"""
厨房服务
营业日时段看板（各时段锅数占用与订单）与订单状态流转
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ..config.settings import Settings, settings
from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import InvalidStatusTransitionError, OrderNotFoundError
from ..models.order import COUNTED_STATUSES, OrderStatus
from .capacity_service import CapacityService
from .live_feed import TOPIC_ORDERS, ChangeBus, change_bus
from .order_service import OrderService
from .schedule_service import ScheduleService, day_range, slot_label

logger = logging.getLogger(__name__)

# 目标状态 -> 允许的当前状态
ALLOWED_TRANSITIONS = {
    OrderStatus.SERVED.value: {OrderStatus.PENDING.value},
    OrderStatus.PENDING.value: {OrderStatus.SERVED.value},
    OrderStatus.CANCELLED.value: {OrderStatus.PENDING.value, OrderStatus.SERVED.value},
}


class KitchenService:
    """厨房看板与订单状态"""

    def __init__(self, db: Optional[DatabaseManager] = None, config: Optional[Settings] = None,
                 bus: Optional[ChangeBus] = None):
        self.db = db or db_manager
        self.config = config or settings
        self.bus = bus or change_bus
        self.schedule = ScheduleService(self.config)
        self.capacity = CapacityService(self.db, self.config)
        self.orders = OrderService(self.db, self.config, self.bus)

    def board(self, service_date: date, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        某营业日的时段看板

        每个时段给出已用/容量锅数和落在该时段的订单（pending + served）；
        取餐时间不在营业时段内的订单放在 unscheduled。
        """
        now = now or self.schedule.now()
        usage = self.capacity.aggregate_usage(service_date)
        slots = self.schedule.build_slots(service_date, usage.usage_by_slot, now)

        start, end = day_range(service_date)
        orders = self.orders.fetch_orders(
            "o.pickup_time >= ? AND o.pickup_time < ? AND o.status IN (?, ?)",
            [start, end, *COUNTED_STATUSES],
        )

        grouped: Dict[str, List] = {slot.label: [] for slot in slots}
        unscheduled = []
        for order in orders:
            key = slot_label(self.schedule.floor(order.pickup_time))
            if key in grouped:
                grouped[key].append(order)
            else:
                unscheduled.append(order)

        return {
            "date": service_date.isoformat(),
            "capacity_per_slot": self.config.capacity_per_slot,
            "daily_limited_item": self.config.daily_limited_item_name,
            "daily_limited_used": usage.daily_limited_used,
            "daily_limit": self.config.daily_limit,
            "pending_count": sum(1 for o in orders if o.status == OrderStatus.PENDING.value),
            "slots": [
                {
                    "label": slot.label,
                    "value": slot.value,
                    "used_pots": slot.used_pots,
                    "remaining_pots": slot.remaining_pots,
                    "orders": grouped[slot.label],
                }
                for slot in slots
            ],
            "unscheduled": unscheduled,
        }

    def mark_served(self, order_id: int, actor: str) -> str:
        return self._transition(order_id, OrderStatus.SERVED.value, actor)

    def mark_pending(self, order_id: int, actor: str) -> str:
        """撤销出餐，回到待处理"""
        return self._transition(order_id, OrderStatus.PENDING.value, actor)

    def cancel(self, order_id: int, actor: str) -> str:
        """软删除：cancelled 的订单不再占用容量"""
        return self._transition(order_id, OrderStatus.CANCELLED.value, actor)

    def _transition(self, order_id: int, target: str, actor: str) -> str:
        with self.db.transaction() as conn:
            row = conn.execute("SELECT status FROM orders WHERE order_id = ?", [order_id]).fetchone()
            if row is None:
                raise OrderNotFoundError(order_id)
            current = row[0]
            if current not in ALLOWED_TRANSITIONS[target]:
                raise InvalidStatusTransitionError(current, target)

            conn.execute(
                "UPDATE orders SET status = ?, updated_at = now() WHERE order_id = ?",
                [target, order_id],
            )
            action = "order_cancel" if target == OrderStatus.CANCELLED.value else "order_status_change"
            conn.execute(
                "INSERT INTO logs(actor, action, detail_json) VALUES (?,?,?)",
                [actor, action, json.dumps({"order_id": order_id, "before": current, "after": target})],
            )

        logger.info("order %s: %s -> %s by %s", order_id, current, target, actor)
        self.bus.publish(TOPIC_ORDERS, {"order_id": order_id, "event": target})
        return target
