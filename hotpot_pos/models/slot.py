"""
取餐时段相关数据模型
时段每次读取时重新计算，不落库
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Dict, Optional


class BookingWindow(BaseModel):
    """预订窗口判定结果"""
    is_open: bool
    service_date: Optional[date] = None


class PickupSlot(BaseModel):
    """15分钟取餐时段"""
    start: datetime = Field(..., description="时段起点（本地时间）")
    value: str = Field(..., description="提交用的本地时间戳 YYYY-MM-DDTHH:MM:SS")
    label: str = Field(..., description="HH:MM")
    used_pots: int = 0
    remaining_pots: int = 0
    is_past: bool = False
    is_full: bool = False
    is_selectable: bool = True

    @property
    def disabled(self) -> bool:
        return not self.is_selectable


class CapacityUsage(BaseModel):
    """某营业日的容量占用"""
    usage_by_slot: Dict[str, int] = Field(default_factory=dict, description="HH:MM -> 已用锅数")
    daily_limited_used: int = 0
    degraded: bool = Field(False, description="读取失败时的零占用兜底")


class GuardDecision(BaseModel):
    """容量守卫判定"""
    allowed: bool
    code: Optional[str] = None
    reason: Optional[str] = None
    slot: Optional[str] = None
    remaining: Optional[int] = None
    over_by: int = 0
