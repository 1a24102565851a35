"""
订单路由
结账下单与确认内容查询
"""

from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends

from ...models.order import Order
from ...schemas.order import CheckoutRequest, OrderConfirmation
from ...services.order_service import OrderService
from ..deps import get_clock, get_order_service

router = APIRouter()


@router.post("", response_model=OrderConfirmation)
def create_order(req: CheckoutRequest, service: OrderService = Depends(get_order_service),
                 clock: Callable[[], datetime] = Depends(get_clock)):
    """
    结账

    营业状态、时段与容量在写入事务内重新检查，失败时返回对应错误码，不写入任何数据。
    """
    result = service.submit_order(
        req.customer_name,
        req.customer_phone,
        req.pickup_time,
        req.cart,
        now=clock(),
    )
    return OrderConfirmation(**result)


@router.get("/{order_id}", response_model=Order)
def get_order(order_id: int, service: OrderService = Depends(get_order_service)):
    """获取订单详情"""
    return service.get_order(order_id)
