"""
店家营业状态服务
store_settings 表中 id=1 的 is_open 开关，可读、可切换、切换时发布变更
"""

import json
from typing import Optional

import duckdb

from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import DatabaseError
from .live_feed import TOPIC_STORE, ChangeBus, change_bus


class StoreService:
    """店家营业状态"""

    def __init__(self, db: Optional[DatabaseManager] = None, bus: Optional[ChangeBus] = None):
        self.db = db or db_manager
        self.bus = bus or change_bus

    def is_open(self, conn: Optional[duckdb.DuckDBPyConnection] = None) -> bool:
        """读取营业状态；读取失败抛出 DatabaseError，不做默认值"""
        query = "SELECT is_open FROM store_settings WHERE id = 1"
        if conn is None:
            row = self.db.execute_one(query)
        else:
            row = conn.execute(query).fetchone()
        if row is None:
            raise DatabaseError("無法確認店家狀態，請稍後再試")
        return bool(row[0])

    def set_open(self, is_open: bool, actor: str) -> bool:
        """切换营业状态并记录日志"""
        with self.db.transaction() as conn:
            before = self.is_open(conn)
            conn.execute(
                "UPDATE store_settings SET is_open = ?, updated_at = now() WHERE id = 1",
                [is_open],
            )
            conn.execute(
                "INSERT INTO logs(actor, action, detail_json) VALUES (?,?,?)",
                [actor, "store_toggle", json.dumps({"before": before, "after": is_open})],
            )

        self.bus.publish(TOPIC_STORE, {"is_open": is_open})
        return is_open
