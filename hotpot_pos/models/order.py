"""
订单相关数据模型
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from enum import Enum


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "pending"       # 待处理
    SERVED = "served"         # 已出餐
    CANCELLED = "cancelled"   # 已取消（软删除）


# 计入容量的订单状态
COUNTED_STATUSES = (OrderStatus.PENDING.value, OrderStatus.SERVED.value)


class Addon(BaseModel):
    """加料"""
    name: str
    price: int = Field(0, ge=0, description="单价")
    quantity: int = Field(1, ge=1, description="数量")


class LineOptions(BaseModel):
    """品项选项：辣度、备注、加料"""
    spiciness: Optional[str] = None
    note: Optional[str] = None
    addons: List[Addon] = Field(default_factory=list)

    @property
    def addons_total(self) -> int:
        return sum(a.price * a.quantity for a in self.addons)


class CartLine(BaseModel):
    """购物车行（结账时提交）"""
    menu_item_id: Optional[int] = Field(None, description="菜单品项ID")
    name: str = Field(..., min_length=1, description="品名")
    price: int = Field(..., ge=0, description="单价（不含加料）")
    quantity: int = Field(1, ge=1, description="数量")
    options: Optional[LineOptions] = None

    @property
    def final_price(self) -> int:
        """含加料的单价"""
        return self.price + (self.options.addons_total if self.options else 0)

    @property
    def subtotal(self) -> int:
        return self.final_price * self.quantity


class OrderRecord(BaseModel):
    """从订单表读取的记录"""

    model_config = {"from_attributes": True, "use_enum_values": True}


class OrderLineItem(OrderRecord):
    """订单行"""
    item_name: str
    quantity: int
    price_at_time: Optional[int] = None
    options: Optional[LineOptions] = None
    is_pot: Optional[bool] = None
    is_daily_limited: Optional[bool] = None


class Order(OrderRecord):
    """订单完整模型"""
    order_id: int = Field(..., description="订单ID")
    pickup_number: Optional[int] = Field(None, description="当日取餐号")
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    table_no: Optional[str] = None
    dining_option: Optional[str] = None
    pickup_time: Optional[datetime] = Field(None, description="取餐时间，空表示尽快")
    total_amount: int = Field(..., description="总金额")
    status: OrderStatus = Field(..., description="订单状态")
    items: List[OrderLineItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
