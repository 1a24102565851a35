"""
厨房看板与订单状态的响应模式
"""

from pydantic import BaseModel, Field
from typing import List
from ..models.order import Order


class BoardSlot(BaseModel):
    label: str
    value: str
    used_pots: int
    remaining_pots: int
    orders: List[Order] = Field(default_factory=list)


class KitchenBoardResponse(BaseModel):
    """某营业日的时段看板"""
    date: str
    capacity_per_slot: int
    daily_limited_item: str
    daily_limited_used: int
    daily_limit: int
    pending_count: int
    slots: List[BoardSlot] = Field(default_factory=list)
    unscheduled: List[Order] = Field(default_factory=list, description="取餐时间不在营业时段内的订单")


class StatusChangeResponse(BaseModel):
    order_id: int
    status: str
