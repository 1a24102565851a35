"""
路由共用的依赖
数据库、配置与变更总线取自应用 state（create_app 绑定），测试中可整体替换
"""

from datetime import datetime
from typing import Callable

from fastapi import Depends, Request

from ..config.settings import Settings, settings
from ..core.database import DatabaseManager, get_db
from ..services.availability_service import AvailabilityService
from ..services.capacity_service import CapacityService
from ..services.cart_guard import CartGuard
from ..services.kitchen_service import KitchenService
from ..services.live_feed import ChangeBus, change_bus
from ..services.order_service import OrderService
from ..services.schedule_service import ScheduleService
from ..services.store_service import StoreService


def get_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", settings)


def get_bus(request: Request) -> ChangeBus:
    return getattr(request.app.state, "bus", change_bus)


def get_clock(config: Settings = Depends(get_settings)) -> Callable[[], datetime]:
    """返回取当前本地时间的函数（测试中覆盖为固定时钟）"""
    return ScheduleService(config).now


def get_order_service(db: DatabaseManager = Depends(get_db), config: Settings = Depends(get_settings),
                      bus: ChangeBus = Depends(get_bus)) -> OrderService:
    return OrderService(db, config, bus)


def get_kitchen_service(db: DatabaseManager = Depends(get_db), config: Settings = Depends(get_settings),
                        bus: ChangeBus = Depends(get_bus)) -> KitchenService:
    return KitchenService(db, config, bus)


def get_store_service(db: DatabaseManager = Depends(get_db),
                      bus: ChangeBus = Depends(get_bus)) -> StoreService:
    return StoreService(db, bus)


def get_availability_service(db: DatabaseManager = Depends(get_db),
                             config: Settings = Depends(get_settings),
                             bus: ChangeBus = Depends(get_bus)) -> AvailabilityService:
    return AvailabilityService(db, config, bus)


def get_cart_guard(db: DatabaseManager = Depends(get_db),
                   config: Settings = Depends(get_settings)) -> CartGuard:
    return CartGuard(CapacityService(db, config), config)
