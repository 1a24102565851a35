"""
容量统计服务
按营业日汇总各时段已用锅数，以及每日限量品项的当日总量

锅数规则：
- 订单行带有 is_pot 标记时以标记为准（下单时从菜单品项复制）
- 没有标记的旧数据或未知品项，品名包含锅标记字（默认“鍋”）即计入
- 只统计 pending / served 状态的订单；cancelled 不占容量
"""

import logging
from datetime import date, time
from typing import Any, Dict, Iterable, List, Optional

import duckdb

from ..config.settings import Settings, settings
from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import CapacityUnknownError, DatabaseError
from ..models.order import COUNTED_STATUSES
from ..models.slot import CapacityUsage
from .schedule_service import day_range, floor_to_slot, parse_hhmm, slot_label

logger = logging.getLogger(__name__)

DAY_LINES_SQL = """
SELECT o.order_id, o.pickup_time, i.item_name, i.quantity, i.is_pot, i.is_daily_limited
FROM orders o
JOIN order_items i ON i.order_id = o.order_id
WHERE o.pickup_time >= ? AND o.pickup_time < ?
  AND o.status IN (?, ?)
"""


def counts_as_pot(item_name: Optional[str], is_pot: Optional[bool], marker: str) -> bool:
    if is_pot is not None:
        return bool(is_pot)
    return marker in (item_name or "")


def counts_as_daily_limited(item_name: Optional[str], is_daily_limited: Optional[bool],
                            limited_name: str) -> bool:
    if is_daily_limited is not None:
        return bool(is_daily_limited)
    return (item_name or "") == limited_name


def aggregate_lines(rows: Iterable[Dict[str, Any]], *, slot_minutes: int, marker: str,
                    limited_name: str, origin: Optional[time] = None) -> CapacityUsage:
    """
    把当日订单行汇总成 CapacityUsage

    rows 每行需要 pickup_time / item_name / quantity / is_pot / is_daily_limited。
    取餐时间按开店时间（origin）对齐向下取整，避免漂移的时间落到不存在的时段。
    """
    usage: Dict[str, int] = {}
    limited_used = 0

    for row in rows:
        pickup_time = row.get("pickup_time")
        if pickup_time is None:
            continue
        key = slot_label(floor_to_slot(pickup_time, slot_minutes, origin))
        qty = int(row.get("quantity") or 0)

        pots = qty if counts_as_pot(row.get("item_name"), row.get("is_pot"), marker) else 0
        usage[key] = usage.get(key, 0) + pots

        if counts_as_daily_limited(row.get("item_name"), row.get("is_daily_limited"), limited_name):
            limited_used += qty

    return CapacityUsage(usage_by_slot=usage, daily_limited_used=limited_used)


class CapacityService:
    """容量读取：每次都从订单表即时汇总，不做缓存"""

    def __init__(self, db: Optional[DatabaseManager] = None, config: Optional[Settings] = None):
        self.db = db or db_manager
        self.config = config or settings

    def _fetch_day_lines(self, service_date: date,
                         conn: Optional[duckdb.DuckDBPyConnection] = None) -> List[Dict[str, Any]]:
        start, end = day_range(service_date)
        params = [start, end, *COUNTED_STATUSES]
        try:
            if conn is None:
                return self.db.fetch_dicts(DAY_LINES_SQL, params)
            cur = conn.execute(DAY_LINES_SQL, params)
            columns = [d[0] for d in cur.description]
            return [dict(zip(columns, row)) for row in cur.fetchall()]
        except (DatabaseError, duckdb.Error) as e:
            logger.error("capacity read failed for %s: %s", service_date, e)
            raise CapacityUnknownError()

    def aggregate_usage(self, service_date: date,
                        conn: Optional[duckdb.DuckDBPyConnection] = None) -> CapacityUsage:
        """
        汇总营业日各时段已用锅数与限量品项当日总量

        Raises:
            CapacityUnknownError: 读取失败，调用方不得当作零占用
        """
        rows = self._fetch_day_lines(service_date, conn)
        return aggregate_lines(
            rows,
            slot_minutes=self.config.slot_minutes,
            marker=self.config.pot_marker,
            limited_name=self.config.daily_limited_item_name,
            origin=parse_hhmm(self.config.service_open_time),
        )

    def used_pots_for_slot(self, service_date: date, label: str,
                           conn: Optional[duckdb.DuckDBPyConnection] = None) -> int:
        """某一时段的即时已用锅数"""
        return self.aggregate_usage(service_date, conn).usage_by_slot.get(label, 0)

    def daily_limited_used(self, service_date: date,
                           conn: Optional[duckdb.DuckDBPyConnection] = None) -> int:
        return self.aggregate_usage(service_date, conn).daily_limited_used

    @staticmethod
    def degraded_usage() -> CapacityUsage:
        """读取失败时的显式兜底：零占用，并标记 degraded"""
        return CapacityUsage(degraded=True)
