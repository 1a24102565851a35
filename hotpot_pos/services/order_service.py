"""
订单服务模块
结账下单的核心业务逻辑，以及订单读取

主要功能：
- 结账前置检查（预订窗口、营业状态、取餐时段、容量）
- 订单头与订单行在同一事务内写入
- 生成结账确认摘要

业务规则：
- 营业状态与容量在写入事务内即时重读，事务持有数据库锁，
  同一进程内两个结账不会同时拿到最后一格容量
- 取餐号按营业日递增，从 1 开始
- 品名、单价、加料价与锅类/限量标记一律以菜单为准，不采信购物车送来的值
- 订单行保存下单时的单价（含加料）与锅类/限量标记
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import duckdb

from ..config.settings import Settings, settings
from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import (
    BookingClosedError,
    InvalidPickupSlotError,
    OrderNotFoundError,
    StoreClosedError,
    ValidationError,
)
from ..models.order import CartLine, LineOptions, Order, OrderLineItem, OrderStatus
from .capacity_service import CapacityService
from .cart_guard import CartGuard
from .live_feed import TOPIC_ORDERS, ChangeBus, change_bus
from .menu_service import MenuService
from .schedule_service import ScheduleService, day_range, format_pickup_time, parse_local_timestamp
from .store_service import StoreService

logger = logging.getLogger(__name__)

TAKE_OUT_TABLE = "外帶"
DEFAULT_SPICINESS = "不辣"


def build_summary_lines(lines: List[CartLine]) -> List[str]:
    """购物车明细文字：品名、辣度、加料、备注"""
    out = []
    for line in lines:
        out.append(f"{line.name} x{line.quantity}  ${line.subtotal}")
        opts = line.options
        if opts is None:
            continue
        if opts.spiciness and opts.spiciness != DEFAULT_SPICINESS:
            out.append(f"  - 辣度：{opts.spiciness}")
        for addon in opts.addons:
            out.append(f"  - +{addon.name} x{addon.quantity}")
        if opts.note:
            out.append(f"  - 備註：{opts.note}")
    return out


def build_confirmation_text(pickup_number: Optional[int], customer_name: str, customer_phone: str,
                            pickup_time: Optional[datetime], lines: List[CartLine], total: int) -> str:
    number = f"#{pickup_number}" if pickup_number else "--"
    text = f"取餐號碼：{number}\n------------------\n"
    text += f"姓名：{customer_name}\n電話：{customer_phone}\n取餐時間：{format_pickup_time(pickup_time)}\n\n"
    text += "餐點內容：\n" + "\n".join(build_summary_lines(lines)) + "\n\n"
    text += f"總金額：${total}"
    return text


class OrderService:
    """订单服务类，封装下单与订单读取"""

    def __init__(self, db: Optional[DatabaseManager] = None, config: Optional[Settings] = None,
                 bus: Optional[ChangeBus] = None):
        self.db = db or db_manager
        self.config = config or settings
        self.bus = bus or change_bus
        self.schedule = ScheduleService(self.config)
        self.capacity = CapacityService(self.db, self.config)
        self.menu = MenuService(self.db, self.config)
        self.guard = CartGuard(self.capacity, self.config)
        self.store = StoreService(self.db, self.bus)

    def submit_order(self, customer_name: str, customer_phone: str, pickup_time: str,
                     cart_lines: List[CartLine], now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        结账下单

        Args:
            customer_name: 顾客姓名
            customer_phone: 顾客电话
            pickup_time: 所选时段的本地时间戳
            cart_lines: 购物车行
            now: 当前本地时间（默认取部署时区当前时间）

        Returns:
            dict: order_id、取餐号、取餐时间、明细、总额与确认文字

        Raises:
            ValidationError: 必填项缺失，或品项不存在、暂停供应
            BookingClosedError: 不在预订窗口
            StoreClosedError: 店家已打烊
            InvalidPickupSlotError: 时段不存在、已过去或已满
            SlotCapacityExceededError / DailyLimitExceededError: 容量不足
            CapacityUnknownError: 无法读取容量
        """
        now = now or self.schedule.now()
        customer_name = (customer_name or "").strip()
        customer_phone = (customer_phone or "").strip()

        if not cart_lines:
            raise ValidationError("購物車是空的")
        if not customer_name:
            raise ValidationError("外帶請輸入姓名")
        if not customer_phone:
            raise ValidationError("請輸入電話")
        if not pickup_time:
            raise ValidationError("請選擇取餐時間")

        window = self.schedule.booking_window(now)
        if not window.is_open:
            raise BookingClosedError()

        picked_at = parse_local_timestamp(pickup_time, self.config.timezone)
        if picked_at is None:
            raise InvalidPickupSlotError(details={"pickup_time": pickup_time})

        service_date = window.service_date

        with self.db.transaction() as conn:
            if not self.store.is_open(conn):
                raise StoreClosedError()

            cart_lines, classes = self.menu.price_cart(cart_lines, conn)
            cart_pots = sum(l.quantity for l, (pot, _) in zip(cart_lines, classes) if pot)
            limited_qty = sum(l.quantity for l, (_, limited) in zip(cart_lines, classes) if limited)
            total = sum(l.subtotal for l in cart_lines)

            usage = self.capacity.aggregate_usage(service_date, conn)
            slots = self.schedule.build_slots(service_date, usage.usage_by_slot, now)
            picked = self.schedule.find_slot(slots, picked_at)
            if picked is None:
                raise InvalidPickupSlotError(details={"pickup_time": pickup_time})
            if picked.is_past:
                raise InvalidPickupSlotError("此取餐時段已過，請重新選擇", details={"slot": picked.label})
            if picked.is_full:
                raise InvalidPickupSlotError("此取餐時段已滿，請選其他時段", details={"slot": picked.label})

            self.guard.enforce(service_date, picked.label, 0, cart_pots, limited_qty, conn)

            pickup_number = self._next_pickup_number(conn, service_date)
            order_id = conn.execute(
                """INSERT INTO orders(pickup_number, table_no, dining_option, customer_name,
                                      customer_phone, pickup_time, total_amount, status)
                   VALUES (?,?,?,?,?,?,?,?) RETURNING order_id""",
                [pickup_number, TAKE_OUT_TABLE, "take_out", customer_name, customer_phone,
                 picked.start, total, OrderStatus.PENDING.value],
            ).fetchone()[0]

            self._insert_lines(conn, order_id, cart_lines, classes)
            self._log_order_create(conn, order_id, pickup_number, picked.value, total, cart_pots)

        logger.info("order %s created for %s (#%s, %s pots)", order_id, picked.value, pickup_number, cart_pots)
        self.bus.publish(TOPIC_ORDERS, {"order_id": order_id, "event": "created"})

        return {
            "order_id": order_id,
            "pickup_number": pickup_number,
            "pickup_time": picked.value,
            "pickup_time_text": format_pickup_time(picked.start),
            "lines": build_summary_lines(cart_lines),
            "total_amount": total,
            "summary": build_confirmation_text(pickup_number, customer_name, customer_phone,
                                               picked.start, cart_lines, total),
        }

    def get_order(self, order_id: int) -> Order:
        orders = self.fetch_orders("o.order_id = ?", [order_id])
        if not orders:
            raise OrderNotFoundError(order_id)
        return orders[0]

    def fetch_orders(self, where: str, params: list) -> List[Order]:
        """按条件读取订单并带出订单行，按取餐时间、下单时间排序"""
        headers = self.db.fetch_dicts(
            f"""SELECT o.order_id, o.pickup_number, o.customer_name, o.customer_phone, o.table_no,
                       o.dining_option, o.pickup_time, o.total_amount, o.status,
                       o.created_at, o.updated_at
                FROM orders o
                WHERE {where}
                ORDER BY o.pickup_time NULLS LAST, o.created_at, o.order_id""",
            params,
        )
        if not headers:
            return []

        ids = [h["order_id"] for h in headers]
        placeholders = ",".join("?" for _ in ids)
        lines = self.db.fetch_dicts(
            f"""SELECT order_id, item_name, quantity, price_at_time, options_json, is_pot, is_daily_limited
                FROM order_items WHERE order_id IN ({placeholders}) ORDER BY id""",
            ids,
        )
        by_order: Dict[int, List[OrderLineItem]] = {}
        for line in lines:
            by_order.setdefault(line["order_id"], []).append(OrderLineItem(
                item_name=line["item_name"],
                quantity=line["quantity"],
                price_at_time=line["price_at_time"],
                options=self._parse_options(line["options_json"]),
                is_pot=line["is_pot"],
                is_daily_limited=line["is_daily_limited"],
            ))

        return [Order(**h, items=by_order.get(h["order_id"], [])) for h in headers]

    @staticmethod
    def _parse_options(raw) -> Optional[LineOptions]:
        if not raw:
            return None
        try:
            data = json.loads(raw) if isinstance(raw, str) else raw
            return LineOptions(**data) if isinstance(data, dict) else None
        except (ValueError, TypeError):
            return None

    def _next_pickup_number(self, conn: duckdb.DuckDBPyConnection, service_date) -> int:
        start, end = day_range(service_date)
        row = conn.execute(
            "SELECT COALESCE(MAX(pickup_number), 0) FROM orders WHERE pickup_time >= ? AND pickup_time < ?",
            [start, end],
        ).fetchone()
        return int(row[0]) + 1

    def _insert_lines(self, conn: duckdb.DuckDBPyConnection, order_id: int, lines: List[CartLine],
                      classes: List[Tuple[bool, bool]]):
        for line, (is_pot, is_limited) in zip(lines, classes):
            options = json.dumps(line.options.model_dump(), ensure_ascii=False) if line.options else None
            conn.execute(
                """INSERT INTO order_items(order_id, menu_item_id, item_name, quantity, price_at_time,
                                           options_json, is_pot, is_daily_limited)
                   VALUES (?,?,?,?,?,?,?,?)""",
                [order_id, line.menu_item_id, line.name, line.quantity, line.final_price,
                 options, is_pot, is_limited],
            )

    def _log_order_create(self, conn: duckdb.DuckDBPyConnection, order_id: int, pickup_number: int,
                          pickup_time: str, total: int, pots: int):
        log_detail = {
            "order_id": order_id,
            "pickup_number": pickup_number,
            "pickup_time": pickup_time,
            "total_amount": total,
            "pots": pots,
        }
        conn.execute(
            "INSERT INTO logs(actor, action, detail_json) VALUES (?,?,?)",
            ["customer", "order_create", json.dumps(log_detail, ensure_ascii=False)],
        )

