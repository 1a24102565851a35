"""
菜单服务
结账时以菜单为准：品名、单价、锅类/限量标记都从 menu_items 读取，
购物车送来的品名与价格只用来定位品项。

加料价格同样以店内价目为准；限量品项只能加它专属的几样配料。
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import duckdb

from ..config.settings import Settings, settings
from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import ValidationError
from ..models.order import Addon, CartLine
from .capacity_service import counts_as_daily_limited, counts_as_pot

logger = logging.getLogger(__name__)

# 加料价目
ADDON_PRICES: Dict[str, int] = {
    "蟹肉棒": 20,
    "鱈魚丸": 20,
    "北海翅": 20,
    "鑫鑫腸": 20,
    "金針菇": 10,
    "臭豆腐": 20,
    "貢丸": 20,
    "魚餃": 20,
    "蒸餃": 20,
    "黑輪": 20,
    "米血": 20,
    "鴨血": 20,
    "蝦球": 20,
    "大腸": 50,
    "豆皮": 30,
    "豬肉": 40,
    "高麗菜": 20,
    "科學麵": 15,
    "冬粉": 10,
    "白飯": 10,
}

# 限量品项可选的加料
LIMITED_ITEM_ADDONS: Dict[str, int] = {
    "金針菇": 10,
    "臭豆腐": 20,
    "鴨血": 20,
    "豆皮": 30,
    "高麗菜": 20,
}

MENU_COLUMNS = "id, name, price, is_available, is_pot, is_daily_limited"


class MenuService:
    """菜单品项读取与结账定价"""

    def __init__(self, db: Optional[DatabaseManager] = None, config: Optional[Settings] = None):
        self.db = db or db_manager
        self.config = config or settings

    def _fetch(self, query: str, params: list,
               conn: Optional[duckdb.DuckDBPyConnection] = None) -> List[Dict[str, Any]]:
        if conn is None:
            return self.db.fetch_dicts(query, params)
        cur = conn.execute(query, params)
        columns = [d[0] for d in cur.description]
        return [dict(zip(columns, row)) for row in cur.fetchall()]

    def lookup(self, lines: List[CartLine],
               conn: Optional[duckdb.DuckDBPyConnection] = None) -> List[Optional[Dict[str, Any]]]:
        """
        为每个购物车行找到菜单品项

        有 menu_item_id 时按 ID；没有时按品名精确匹配（同名取 ID 最小者）。
        找不到的行返回 None。
        """
        ids = sorted({l.menu_item_id for l in lines if l.menu_item_id is not None})
        names = sorted({l.name for l in lines if l.menu_item_id is None})

        by_id: Dict[int, Dict[str, Any]] = {}
        by_name: Dict[str, Dict[str, Any]] = {}
        if ids:
            placeholders = ",".join("?" for _ in ids)
            for row in self._fetch(f"SELECT {MENU_COLUMNS} FROM menu_items WHERE id IN ({placeholders})",
                                   ids, conn):
                by_id[row["id"]] = row
        if names:
            placeholders = ",".join("?" for _ in names)
            for row in self._fetch(f"SELECT {MENU_COLUMNS} FROM menu_items WHERE name IN ({placeholders}) "
                                   f"ORDER BY id", names, conn):
                by_name.setdefault(row["name"], row)

        return [by_id.get(l.menu_item_id) if l.menu_item_id is not None else by_name.get(l.name)
                for l in lines]

    def classify_row(self, row: Dict[str, Any]) -> Tuple[bool, bool]:
        return (
            counts_as_pot(row["name"], row["is_pot"], self.config.pot_marker),
            counts_as_daily_limited(row["name"], row["is_daily_limited"],
                                    self.config.daily_limited_item_name),
        )

    def price_cart(self, lines: List[CartLine], conn: Optional[duckdb.DuckDBPyConnection] = None
                   ) -> Tuple[List[CartLine], List[Tuple[bool, bool]]]:
        """
        以菜单重建购物车行

        Returns:
            (定价后的购物车行, 每行的 (是否锅类, 是否限量))

        Raises:
            ValidationError: 品项不存在、暂停供应，或加料不在价目内
        """
        priced: List[CartLine] = []
        classes: List[Tuple[bool, bool]] = []

        for line, row in zip(lines, self.lookup(lines, conn)):
            if row is None:
                logger.info("checkout rejected unknown item id=%s name=%s", line.menu_item_id, line.name)
                raise ValidationError(f"品項不存在：{line.name}",
                                      details={"menu_item_id": line.menu_item_id, "name": line.name})
            if row["is_available"] is False:
                raise ValidationError(f"{row['name']} 目前暫停供應", details={"menu_item_id": row["id"]})

            is_pot, is_limited = self.classify_row(row)
            options = line.options
            if options is not None and options.addons:
                allowed = LIMITED_ITEM_ADDONS if is_limited else ADDON_PRICES
                addons = []
                for addon in options.addons:
                    if addon.name not in allowed:
                        raise ValidationError(f"{row['name']} 不提供加料：{addon.name}",
                                              details={"addon": addon.name})
                    addons.append(Addon(name=addon.name, price=allowed[addon.name],
                                        quantity=addon.quantity))
                options = options.model_copy(update={"addons": addons})

            priced.append(line.model_copy(update={
                "menu_item_id": row["id"],
                "name": row["name"],
                "price": row["price"],
                "options": options,
            }))
            classes.append((is_pot, is_limited))

        return priced, classes


class ItemClassifier:
    """
    购物车行分类（是否锅类、是否限量）

    守卫阶段只做判断，不拒绝未知品项：菜单里找得到就用菜单的品名与标记，
    找不到才按购物车上的品名套用名称规则。
    """

    def __init__(self, db: Optional[DatabaseManager] = None, config: Optional[Settings] = None):
        self.menu = MenuService(db, config)
        self.config = self.menu.config

    def classify(self, lines: List[CartLine],
                 conn: Optional[duckdb.DuckDBPyConnection] = None) -> List[Tuple[bool, bool]]:
        out = []
        for line, row in zip(lines, self.menu.lookup(lines, conn)):
            if row is not None:
                out.append(self.menu.classify_row(row))
            else:
                out.append((
                    counts_as_pot(line.name, None, self.config.pot_marker),
                    counts_as_daily_limited(line.name, None, self.config.daily_limited_item_name),
                ))
        return out

    def count_pots(self, lines: List[CartLine]) -> int:
        return sum(l.quantity for l, (pot, _) in zip(lines, self.classify(lines)) if pot)

    def count_daily_limited(self, lines: List[CartLine]) -> int:
        return sum(l.quantity for l, (_, limited) in zip(lines, self.classify(lines)) if limited)
