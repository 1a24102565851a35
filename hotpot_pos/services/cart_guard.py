"""
购物车容量守卫
加入购物车、确认配置品项、结账前三个时点，即时重读占用后判定是否允许

判定规则：
- 时段：购物车已有锅数 + 本次锅数 <= 容量 - 即时已用（等号允许）
- 限量品项：当日已售 + 本次数量 <= 每日上限

这里的判定只缩小竞争窗口；真正的互斥在下单事务内完成（见 OrderService）。
"""

import logging
from datetime import date, datetime
from typing import List, Optional

import duckdb

from ..config.settings import Settings, settings
from ..core.exceptions import DailyLimitExceededError, SlotCapacityExceededError
from ..models.order import CartLine
from ..models.slot import GuardDecision
from .capacity_service import CapacityService
from .menu_service import ItemClassifier
from .schedule_service import ScheduleService, parse_local_timestamp

logger = logging.getLogger(__name__)

STAGE_ADD = "add"
STAGE_CONFIGURE = "configure"
STAGE_CHECKOUT = "checkout"


def evaluate_slot_guard(slot: str, used_now: int, cart_pots: int, candidate_pots: int,
                        capacity: int) -> GuardDecision:
    remaining = max(0, capacity - used_now)
    total = cart_pots + candidate_pots
    if total <= remaining:
        return GuardDecision(allowed=True, slot=slot, remaining=remaining)
    return GuardDecision(
        allowed=False,
        code=SlotCapacityExceededError.default_code,
        reason=(f"此取餐時段剩餘 {remaining} 鍋容量，你的購物車目前已有 {cart_pots} 鍋。"
                f"您選擇的 {slot} 時段已額滿，請改選其他取餐時間。"),
        slot=slot,
        remaining=remaining,
        over_by=total - remaining,
    )


def evaluate_daily_limit(item_name: str, used_today: int, candidate_qty: int,
                         limit: int) -> GuardDecision:
    remaining = max(0, limit - used_today)
    if used_today + candidate_qty <= limit:
        return GuardDecision(allowed=True, remaining=remaining)
    if remaining == 0:
        reason = f"抱歉，{item_name} 今日限量 {limit} 鍋，已售完"
    else:
        reason = f"抱歉，{item_name} 今日剩餘 {remaining} 鍋"
    return GuardDecision(
        allowed=False,
        code=DailyLimitExceededError.default_code,
        reason=reason,
        remaining=remaining,
        over_by=used_today + candidate_qty - limit,
    )


class CartGuard:
    """每次判定前都即时读取占用，不信任先前的时段列表"""

    def __init__(self, capacity: Optional[CapacityService] = None, config: Optional[Settings] = None):
        self.config = config or settings
        self.capacity = capacity or CapacityService(config=self.config)
        self.classifier = ItemClassifier(self.capacity.db, self.config)
        self.schedule = ScheduleService(self.config)

    def guard_addition(self, service_date: date, slot: str, candidate_pots: int, cart_pots: int,
                       conn: Optional[duckdb.DuckDBPyConnection] = None) -> GuardDecision:
        used_now = self.capacity.used_pots_for_slot(service_date, slot, conn)
        decision = evaluate_slot_guard(slot, used_now, cart_pots, candidate_pots,
                                       self.config.capacity_per_slot)
        if not decision.allowed:
            logger.info("slot guard rejected %s %s: used=%s cart=%s candidate=%s",
                        service_date, slot, used_now, cart_pots, candidate_pots)
        return decision

    def guard_daily_limited(self, service_date: date, candidate_qty: int,
                            conn: Optional[duckdb.DuckDBPyConnection] = None) -> GuardDecision:
        used_today = self.capacity.daily_limited_used(service_date, conn)
        return evaluate_daily_limit(self.config.daily_limited_item_name, used_today,
                                    candidate_qty, self.config.daily_limit)

    def enforce(self, service_date: date, slot: Optional[str], candidate_pots: int, cart_pots: int,
                daily_limited_qty: int, conn: Optional[duckdb.DuckDBPyConnection] = None) -> None:
        """
        两项检查都通过才返回，否则抛出对应异常

        Raises:
            SlotCapacityExceededError: 时段容量不足
            DailyLimitExceededError: 限量品项超量
            CapacityUnknownError: 无法读取占用
        """
        if slot and (candidate_pots or cart_pots):
            decision = self.guard_addition(service_date, slot, candidate_pots, cart_pots, conn)
            if not decision.allowed:
                raise SlotCapacityExceededError(slot, decision.remaining, candidate_pots, cart_pots)

        if daily_limited_qty:
            decision = self.guard_daily_limited(service_date, daily_limited_qty, conn)
            if not decision.allowed:
                raise DailyLimitExceededError(self.config.daily_limited_item_name,
                                              decision.remaining, daily_limited_qty)

    def check_cart(self, stage: str, pickup_time: Optional[str], item: Optional[CartLine],
                   cart: List[CartLine], now: Optional[datetime] = None) -> GuardDecision:
        """
        购物车变动前的判定

        - add / configure：item 为本次加入的品项（configure 可为任意数量）
        - checkout：不加新品项，用整车锅数对照即时剩余
        取餐时间必须是本次营业日生成的时段之一且尚未过去；
        未选取餐时段时跳过时段检查，限量品项仍检查。
        """
        now = now or self.schedule.now()
        window = self.schedule.booking_window(now)
        if not window.is_open:
            return GuardDecision(allowed=False, code="BOOKING_CLOSED", reason="目前未開放預訂")

        candidate = [item] if item is not None and stage != STAGE_CHECKOUT else []
        cart_pots = self.classifier.count_pots(cart)
        candidate_pots = self.classifier.count_pots(candidate)
        if stage == STAGE_CHECKOUT:
            limited_qty = self.classifier.count_daily_limited(cart)
        else:
            limited_qty = self.classifier.count_daily_limited(candidate)

        decision = GuardDecision(allowed=True)
        if pickup_time:
            picked_at = parse_local_timestamp(pickup_time, self.config.timezone)
            slots = self.schedule.build_slots(window.service_date, {}, now)
            picked = self.schedule.find_slot(slots, picked_at) if picked_at else None
            if picked is None:
                return GuardDecision(allowed=False, code="INVALID_PICKUP_SLOT",
                                     reason="取餐時間不合法，請重新選擇")
            if picked.is_past:
                return GuardDecision(allowed=False, code="INVALID_PICKUP_SLOT",
                                     reason="此取餐時段已過，請重新選擇", slot=picked.label)
            slot = picked.label
            if candidate_pots or cart_pots:
                decision = self.guard_addition(window.service_date, slot, candidate_pots, cart_pots)
                if not decision.allowed:
                    return decision

        if limited_qty:
            limited = self.guard_daily_limited(window.service_date, limited_qty)
            if not limited.allowed:
                return limited
        return decision
