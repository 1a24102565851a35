"""
取餐时段列表的响应模式
"""

from pydantic import BaseModel, Field
from typing import List, Optional


class SlotView(BaseModel):
    """时段选择器中的一项"""
    value: str = Field(..., description="提交用的本地时间戳")
    label: str = Field(..., description="HH:MM")
    used: int
    remaining: int
    is_past: bool
    is_full: bool
    disabled: bool


class SlotListResponse(BaseModel):
    """预订窗口与时段"""
    booking_open: bool
    service_date: Optional[str] = Field(None, description="营业日 YYYY-MM-DD")
    store_open: bool
    capacity_per_slot: int
    capacity_degraded: bool = Field(False, description="容量读取失败，显示的是零占用")
    daily_limited_item: str
    daily_limit: int
    daily_limited_remaining: Optional[int] = None
    poll_interval_seconds: int
    slots: List[SlotView] = Field(default_factory=list)
