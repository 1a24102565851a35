"""
数据库连接和管理模块
DuckDB 单连接 + 可重入锁，所有读写经由 DatabaseManager
"""

import duckdb
from fastapi import Request
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional
from contextlib import contextmanager
import threading
import logging

from .exceptions import BaseApplicationError, ConcurrencyError, DatabaseError
from ..config.settings import settings

logger = logging.getLogger(__name__)

# 完整的表结构定义
SCHEMA_SQL = r"""
CREATE SEQUENCE IF NOT EXISTS menu_items_id_seq;
CREATE TABLE IF NOT EXISTS menu_items (
  id INTEGER DEFAULT nextval('menu_items_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  price INTEGER NOT NULL,
  category_id INTEGER,
  is_available BOOLEAN DEFAULT TRUE,
  is_pot BOOLEAN,
  is_daily_limited BOOLEAN
);

CREATE TABLE IF NOT EXISTS store_settings (
  id INTEGER PRIMARY KEY,
  is_open BOOLEAN NOT NULL DEFAULT TRUE,
  updated_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS orders_id_seq;
CREATE TABLE IF NOT EXISTS orders (
  order_id INTEGER DEFAULT nextval('orders_id_seq') PRIMARY KEY,
  pickup_number INTEGER,
  table_no TEXT,
  dining_option TEXT,
  customer_name TEXT,
  customer_phone TEXT,
  pickup_time TIMESTAMP,
  total_amount INTEGER NOT NULL,
  status TEXT CHECK(status IN ('pending','served','cancelled')) NOT NULL,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_orders_pickup ON orders(pickup_time);

CREATE SEQUENCE IF NOT EXISTS order_items_id_seq;
CREATE TABLE IF NOT EXISTS order_items (
  id INTEGER DEFAULT nextval('order_items_id_seq') PRIMARY KEY,
  order_id INTEGER NOT NULL,
  menu_item_id INTEGER,
  item_name TEXT NOT NULL,
  quantity INTEGER NOT NULL,
  price_at_time INTEGER NOT NULL,
  options_json JSON,
  is_pot BOOLEAN,
  is_daily_limited BOOLEAN
);

CREATE INDEX IF NOT EXISTS idx_order_items_order ON order_items(order_id);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  actor TEXT,
  action TEXT,
  detail_json JSON,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);

INSERT INTO store_settings(id, is_open)
SELECT 1, TRUE WHERE NOT EXISTS (SELECT 1 FROM store_settings WHERE id = 1);
"""


class DatabaseManager:
    """数据库管理器，封装所有数据库操作"""

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self.db_path = db_path or self._get_db_path_from_settings()

    def _get_db_path_from_settings(self) -> str:
        """从设置中获取数据库路径"""
        db_url = settings.database_url
        if db_url.startswith("duckdb://"):
            db_url = db_url.replace("duckdb://", "")
        if db_url != ":memory:":
            Path(db_url).parent.mkdir(parents=True, exist_ok=True)
        return db_url

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """获取数据库连接"""
        with self._lock:
            if self._connection is None:
                self._connection = duckdb.connect(self.db_path)
                self._init_schema()
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def _init_schema(self):
        """初始化数据库表结构"""
        try:
            try:
                self._connection.execute("INSTALL json")
                self._connection.execute("LOAD json")
            except duckdb.Error:
                pass  # JSON扩展可能已内置

            self._connection.execute(SCHEMA_SQL)

        except duckdb.Error as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")

    def init_database(self):
        """初始化数据库（启动时调用）"""
        self.get_connection()
        logger.info("database ready at %s", self.db_path)

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        数据库事务上下文管理器

        持有管理器锁直到提交或回滚，事务内的读-判-写对本进程内其它请求是原子的。
        业务异常原样抛出，其它异常统一转换为 DatabaseError / ConcurrencyError。
        """
        with self._lock:
            conn = self.connection
            conn.execute("BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception as e:
                try:
                    conn.execute("ROLLBACK")
                except duckdb.Error:
                    logger.warning("rollback failed", exc_info=True)

                if isinstance(e, BaseApplicationError):
                    raise
                if "conflict" in str(e).lower() or "serialization" in str(e).lower():
                    raise ConcurrencyError("系統繁忙，請稍後重試")
                raise DatabaseError(f"資料庫操作失敗: {e}")

    def execute_query(self, query: str, params: list = None) -> list:
        """执行查询并返回结果"""
        try:
            with self._lock:
                con = self.get_connection()
                if params:
                    return con.execute(query, params).fetchall()
                return con.execute(query).fetchall()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def execute_one(self, query: str, params: list = None) -> Optional[tuple]:
        """执行查询并返回单条结果"""
        try:
            with self._lock:
                con = self.get_connection()
                if params:
                    return con.execute(query, params).fetchone()
                return con.execute(query).fetchone()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def fetch_dicts(self, query: str, params: list = None) -> List[Dict[str, Any]]:
        """执行查询并以字典列表返回"""
        try:
            with self._lock:
                cur = self.get_connection().execute(query, params or [])
                columns = [d[0] for d in cur.description]
                return [dict(zip(columns, row)) for row in cur.fetchall()]
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


# 全局数据库管理器实例
db_manager = DatabaseManager()


def get_db(request: Request) -> DatabaseManager:
    """FastAPI 依赖：返回应用绑定的数据库管理器"""
    return getattr(request.app.state, "db", db_manager)
