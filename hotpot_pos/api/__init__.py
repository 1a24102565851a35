"""
API routes and endpoints.
"""

from fastapi import APIRouter
from .v1 import auth, cart, events, kitchen, orders, slots, store

api_router = APIRouter()

# 包含所有v1路由
api_router.include_router(slots.router, prefix="/slots", tags=["取餐时段"])
api_router.include_router(cart.router, prefix="/cart", tags=["购物车"])
api_router.include_router(orders.router, prefix="/orders", tags=["订单"])
api_router.include_router(store.router, prefix="/store", tags=["营业状态"])
api_router.include_router(events.router, prefix="/events", tags=["推送"])
api_router.include_router(auth.router, prefix="/auth", tags=["认证"])
api_router.include_router(kitchen.router, prefix="/kitchen", tags=["厨房"])
