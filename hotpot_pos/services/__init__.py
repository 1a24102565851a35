"""
Business logic services.
Contains service layer implementations for scheduling, capacity and orders.
"""

from .availability_service import AvailabilityService
from .capacity_service import CapacityService
from .cart_guard import CartGuard
from .kitchen_service import KitchenService
from .menu_service import ItemClassifier, MenuService
from .order_service import OrderService
from .schedule_service import ScheduleService
from .store_service import StoreService

__all__ = [
    "AvailabilityService",
    "CapacityService",
    "CartGuard",
    "ItemClassifier",
    "KitchenService",
    "MenuService",
    "OrderService",
    "ScheduleService",
    "StoreService",
]
