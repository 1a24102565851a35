"""
顾客端可选时段快照
预订窗口 -> 容量统计 -> 时段列表，外加营业状态与限量品项余量
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ..config.settings import Settings, settings
from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import CapacityUnknownError
from .capacity_service import CapacityService
from .live_feed import ChangeBus, change_bus
from .schedule_service import ScheduleService
from .store_service import StoreService

logger = logging.getLogger(__name__)


class AvailabilityService:
    """顾客下单页的时段数据"""

    def __init__(self, db: Optional[DatabaseManager] = None, config: Optional[Settings] = None,
                 bus: Optional[ChangeBus] = None):
        self.db = db or db_manager
        self.config = config or settings
        self.schedule = ScheduleService(self.config)
        self.capacity = CapacityService(self.db, self.config)
        self.store = StoreService(self.db, bus or change_bus)

    def snapshot(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        当前可预订的营业日与其时段

        容量读取失败时退回零占用并标记 capacity_degraded，
        下单时仍会在事务内重新检查，不会因此超卖。
        """
        now = now or self.schedule.now()
        window = self.schedule.booking_window(now)
        result = {
            "booking_open": window.is_open,
            "service_date": window.service_date.isoformat() if window.service_date else None,
            "store_open": self.store.is_open(),
            "capacity_per_slot": self.config.capacity_per_slot,
            "capacity_degraded": False,
            "daily_limited_item": self.config.daily_limited_item_name,
            "daily_limit": self.config.daily_limit,
            "daily_limited_remaining": None,
            "poll_interval_seconds": self.config.poll_interval_seconds,
            "slots": [],
        }
        if not window.is_open:
            return result

        try:
            usage = self.capacity.aggregate_usage(window.service_date)
        except CapacityUnknownError:
            logger.warning("capacity unknown for %s, showing zero-usage slots", window.service_date)
            usage = self.capacity.degraded_usage()

        slots = self.schedule.build_slots(window.service_date, usage.usage_by_slot, now)
        result["capacity_degraded"] = usage.degraded
        result["daily_limited_remaining"] = max(0, self.config.daily_limit - usage.daily_limited_used)
        result["slots"] = [
            {
                "value": slot.value,
                "label": slot.label,
                "used": slot.used_pots,
                "remaining": slot.remaining_pots,
                "is_past": slot.is_past,
                "is_full": slot.is_full,
                "disabled": slot.disabled,
            }
            for slot in slots
        ]
        return result
