"""
测试配置文件
提供测试所需的fixtures和配置
"""

import json
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from ..api.deps import get_clock
from ..app import create_app
from ..config.settings import Settings
from ..core.database import DatabaseManager
from ..core.security import SecurityManager
from ..services.live_feed import ChangeBus

# 2026-01-20 周二，2026-01-21 周三（营业日），2026-01-24 周六（营业日）
TUESDAY_MORNING = datetime(2026, 1, 20, 10, 0)
WEDNESDAY_MORNING = datetime(2026, 1, 21, 10, 0)
THURSDAY_NOON = datetime(2026, 1, 22, 12, 0)
FRIDAY_EVENING = datetime(2026, 1, 23, 19, 0)

STAFF_PASSPHRASE = "test-kitchen"


class FixedClock:
    """可调整的固定时钟"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def test_settings():
    """测试配置：内存数据库与固定口令"""
    return Settings(
        _env_file=None,
        database_url="duckdb://:memory:",
        jwt_secret_key="test-secret-key",
        staff_passphrase=STAFF_PASSPHRASE,
        api_title="鍋物外帶 API (Test)",
        api_version="1.0.0-test",
    )


@pytest.fixture
def test_db():
    """测试数据库"""
    db = DatabaseManager(":memory:")
    db.init_database()
    yield db
    db.close()


@pytest.fixture
def bus():
    return ChangeBus()


@pytest.fixture
def clock():
    return FixedClock(WEDNESDAY_MORNING)


@pytest.fixture
def menu(test_db):
    """示例菜单：锅类、限量锅、非锅类，以及名称含“鍋”但标记为非锅的品项"""
    items = [
        ("麻辣鍋", 280, True, False),
        ("牛雜鍋", 320, True, True),
        ("白飯", 20, False, False),
        ("鍋貼", 60, False, False),
    ]
    ids = {}
    for name, price, is_pot, limited in items:
        row = test_db.execute_one(
            "INSERT INTO menu_items(name, price, is_pot, is_daily_limited) VALUES (?,?,?,?) RETURNING id",
            [name, price, is_pot, limited],
        )
        ids[name] = row[0]
    return ids


@pytest.fixture
def app_instance(test_settings, test_db, bus, clock, menu):
    """测试应用"""
    app = create_app(db=test_db, config=test_settings, bus=bus)
    app.dependency_overrides[get_clock] = lambda: clock
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_instance):
    """测试客户端"""
    return TestClient(app_instance)


@pytest.fixture
def staff_headers(test_settings):
    """员工认证请求头"""
    token = SecurityManager(test_settings).create_staff_token("tester")
    return {"Authorization": f"Bearer {token}"}


def insert_order(db, pickup_time, lines, status="pending", pickup_number=None, total=0):
    """
    直接写入一笔订单（绕过下单检查），用来布置已有占用

    lines: [(item_name, quantity)] 或 [(item_name, quantity, is_pot, is_daily_limited)]
    """
    order_id = db.execute_one(
        """INSERT INTO orders(pickup_number, table_no, dining_option, customer_name, customer_phone,
                              pickup_time, total_amount, status)
           VALUES (?,?,?,?,?,?,?,?) RETURNING order_id""",
        [pickup_number, "外帶", "take_out", "王小明", "0912345678", pickup_time, total, status],
    )[0]
    for line in lines:
        name, qty = line[0], line[1]
        is_pot = line[2] if len(line) > 2 else None
        limited = line[3] if len(line) > 3 else None
        db.execute_query(
            """INSERT INTO order_items(order_id, item_name, quantity, price_at_time, options_json,
                                       is_pot, is_daily_limited)
               VALUES (?,?,?,?,?,?,?)""",
            [order_id, name, qty, 100, json.dumps({}), is_pot, limited],
        )
    return order_id
