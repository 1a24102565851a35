"""
订单与购物车相关的请求/响应模式
"""

from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from ..models.order import CartLine


class CheckoutRequest(BaseModel):
    """结账请求"""
    customer_name: str = Field("", description="顾客姓名")
    customer_phone: str = Field("", description="顾客电话")
    pickup_time: Optional[str] = Field(None, description="所选时段的 value，例如 2026-01-24T17:45:00")
    cart: List[CartLine] = Field(default_factory=list, description="购物车行")


class OrderConfirmation(BaseModel):
    """结账成功后的确认内容"""
    order_id: int = Field(..., description="订单ID")
    pickup_number: int = Field(..., description="当日取餐号")
    pickup_time: str = Field(..., description="取餐时段 value")
    pickup_time_text: str = Field(..., description="取餐时间显示文字")
    lines: List[str] = Field(..., description="明细文字")
    total_amount: int = Field(..., description="总金额")
    summary: str = Field(..., description="完整确认文字")


class GuardRequest(BaseModel):
    """购物车容量检查请求"""
    stage: Literal["add", "configure", "checkout"] = Field(..., description="检查时点")
    pickup_time: Optional[str] = Field(None, description="已选时段；未选时只检查限量品项")
    item: Optional[CartLine] = Field(None, description="本次要加入的品项")
    cart: List[CartLine] = Field(default_factory=list, description="购物车现有品项")


class GuardResponse(BaseModel):
    """购物车容量检查结果"""
    allowed: bool
    code: Optional[str] = None
    reason: Optional[str] = None
    slot: Optional[str] = None
    remaining: Optional[int] = None
    over_by: int = 0
