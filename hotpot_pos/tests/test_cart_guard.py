from datetime import date, datetime

import pytest

from ..core.exceptions import DailyLimitExceededError, SlotCapacityExceededError
from ..models.order import CartLine
from ..services.capacity_service import CapacityService
from ..services.cart_guard import (
    STAGE_ADD,
    STAGE_CHECKOUT,
    STAGE_CONFIGURE,
    CartGuard,
    evaluate_daily_limit,
    evaluate_slot_guard,
)
from .conftest import THURSDAY_NOON, WEDNESDAY_MORNING, insert_order

WEDNESDAY = date(2026, 1, 21)
SLOT_1700 = "2026-01-21T17:00:00"


def pot(qty=1):
    return CartLine(name="麻辣鍋", price=280, quantity=qty)


def beef(qty=1):
    return CartLine(name="牛雜鍋", price=320, quantity=qty)


@pytest.fixture
def guard(test_db, test_settings):
    return CartGuard(CapacityService(test_db, test_settings), test_settings)


class TestGuardPolicy:
    """纯判定规则测试"""

    def test_last_unit_allowed(self):
        decision = evaluate_slot_guard("17:00", used_now=6, cart_pots=0, candidate_pots=1, capacity=7)
        assert decision.allowed is True
        assert decision.remaining == 1

    def test_over_capacity_rejected(self):
        decision = evaluate_slot_guard("17:00", used_now=6, cart_pots=0, candidate_pots=2, capacity=7)
        assert decision.allowed is False
        assert decision.code == "SLOT_CAPACITY_EXCEEDED"
        assert decision.remaining == 1
        assert decision.over_by == 1
        assert "17:00" in decision.reason

    def test_cart_pots_count_toward_limit(self):
        assert evaluate_slot_guard("17:00", 5, 1, 1, 7).allowed is True
        assert evaluate_slot_guard("17:00", 5, 2, 1, 7).allowed is False

    def test_overbooked_slot_has_zero_remaining(self):
        decision = evaluate_slot_guard("17:00", used_now=9, cart_pots=0, candidate_pots=1, capacity=7)
        assert decision.remaining == 0
        assert decision.over_by == 1

    def test_daily_limit_remaining_message(self):
        decision = evaluate_daily_limit("牛雜鍋", used_today=49, candidate_qty=2, limit=50)
        assert decision.allowed is False
        assert decision.code == "DAILY_LIMIT_EXCEEDED"
        assert decision.remaining == 1
        assert "今日剩餘 1 鍋" in decision.reason

    def test_daily_limit_sold_out_message(self):
        decision = evaluate_daily_limit("牛雜鍋", used_today=50, candidate_qty=1, limit=50)
        assert decision.remaining == 0
        assert "已售完" in decision.reason

    def test_daily_limit_exact_fill_allowed(self):
        assert evaluate_daily_limit("牛雜鍋", 48, 2, 50).allowed is True


class TestCartGuard:
    """购物车守卫测试（即时读取占用）"""

    def test_add_within_capacity(self, guard, test_db):
        insert_order(test_db, datetime(2026, 1, 21, 17, 0), [("麻辣鍋", 6)])
        decision = guard.check_cart(STAGE_ADD, SLOT_1700, pot(1), [], WEDNESDAY_MORNING)
        assert decision.allowed is True
        assert decision.remaining == 1

    def test_add_beyond_capacity(self, guard, test_db):
        insert_order(test_db, datetime(2026, 1, 21, 17, 0), [("麻辣鍋", 6)])
        decision = guard.check_cart(STAGE_ADD, SLOT_1700, pot(2), [], WEDNESDAY_MORNING)
        assert decision.allowed is False
        assert decision.remaining == 1

    def test_configured_item_quantity(self, guard, test_db):
        insert_order(test_db, datetime(2026, 1, 21, 17, 0), [("麻辣鍋", 3)])
        decision = guard.check_cart(STAGE_CONFIGURE, SLOT_1700, pot(3), [pot(1)], WEDNESDAY_MORNING)
        assert decision.allowed is True
        decision = guard.check_cart(STAGE_CONFIGURE, SLOT_1700, pot(4), [pot(1)], WEDNESDAY_MORNING)
        assert decision.allowed is False
        assert decision.over_by == 1

    def test_non_pot_items_never_blocked_by_slot(self, guard, test_db):
        insert_order(test_db, datetime(2026, 1, 21, 17, 0), [("麻辣鍋", 7)])
        rice = CartLine(name="白飯", price=20, quantity=3)
        assert guard.check_cart(STAGE_ADD, SLOT_1700, rice, [], WEDNESDAY_MORNING).allowed is True

    def test_checkout_rechecks_whole_cart(self, guard, test_db):
        cart = [pot(1), pot(1)]
        assert guard.check_cart(STAGE_CHECKOUT, SLOT_1700, None, cart, WEDNESDAY_MORNING).allowed is True

        # 另一位顾客在此期间下单
        insert_order(test_db, datetime(2026, 1, 21, 17, 0), [("麻辣鍋", 6)])
        decision = guard.check_cart(STAGE_CHECKOUT, SLOT_1700, None, cart, WEDNESDAY_MORNING)
        assert decision.allowed is False
        assert decision.remaining == 1

    def test_daily_limit_without_pickup_slot(self, guard, test_db):
        insert_order(test_db, datetime(2026, 1, 21, 18, 0), [("牛雜鍋", 49)])
        decision = guard.check_cart(STAGE_ADD, None, beef(2), [], WEDNESDAY_MORNING)
        assert decision.allowed is False
        assert decision.code == "DAILY_LIMIT_EXCEEDED"
        assert decision.remaining == 1

        assert guard.check_cart(STAGE_ADD, None, beef(1), [], WEDNESDAY_MORNING).allowed is True

    def test_booking_closed(self, guard):
        decision = guard.check_cart(STAGE_ADD, None, pot(1), [], THURSDAY_NOON)
        assert decision.allowed is False
        assert decision.code == "BOOKING_CLOSED"

    def test_pickup_on_other_day_rejected(self, guard):
        decision = guard.check_cart(STAGE_ADD, "2026-01-24T17:00:00", pot(1), [], WEDNESDAY_MORNING)
        assert decision.allowed is False
        assert decision.code == "INVALID_PICKUP_SLOT"

    @pytest.mark.parametrize("pickup", [
        "2026-01-21T23:50:00",   # 打烊后
        "2026-01-21T17:05:00",   # 不在时段起点
        "2026-01-21T16:00:00",   # 开店前
        "下午五點",
    ])
    def test_pickup_must_be_generated_slot(self, guard, pickup):
        decision = guard.check_cart(STAGE_ADD, pickup, pot(1), [], datetime(2026, 1, 20, 10, 0))
        assert decision.allowed is False
        assert decision.code == "INVALID_PICKUP_SLOT"

    def test_past_slot_rejected(self, guard):
        decision = guard.check_cart(STAGE_CHECKOUT, SLOT_1700, None, [pot(1)], datetime(2026, 1, 21, 17, 10))
        assert decision.allowed is False
        assert decision.code == "INVALID_PICKUP_SLOT"
        assert decision.slot == "17:00"

        later = guard.check_cart(STAGE_CHECKOUT, "2026-01-21T17:15:00", None, [pot(1)],
                                 datetime(2026, 1, 21, 17, 10))
        assert later.allowed is True

    def test_enforce_raises(self, guard, test_db):
        insert_order(test_db, datetime(2026, 1, 21, 17, 0), [("麻辣鍋", 6)])
        with pytest.raises(SlotCapacityExceededError) as exc:
            guard.enforce(WEDNESDAY, "17:00", 0, 2, 0)
        assert exc.value.details["remaining"] == 1
        assert exc.value.details["over_by"] == 1

        insert_order(test_db, datetime(2026, 1, 21, 19, 0), [("牛雜鍋", 50)])
        with pytest.raises(DailyLimitExceededError):
            guard.enforce(WEDNESDAY, None, 0, 0, 1)
