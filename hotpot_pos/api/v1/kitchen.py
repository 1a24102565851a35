"""
厨房路由
时段看板与订单状态（出餐、撤销出餐、取消），均需员工 token
"""

from datetime import date, datetime
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query

from ...core.security import get_current_staff
from ...schemas.kitchen import KitchenBoardResponse, StatusChangeResponse
from ...services.kitchen_service import KitchenService
from ..deps import get_clock, get_kitchen_service

router = APIRouter()


@router.get("/board", response_model=KitchenBoardResponse)
def get_board(
    service_date: Optional[date] = Query(None, alias="date", description="营业日，默认今天"),
    service: KitchenService = Depends(get_kitchen_service),
    clock: Callable[[], datetime] = Depends(get_clock),
    staff: str = Depends(get_current_staff),
):
    now = clock()
    return service.board(service_date or now.date(), now)


@router.post("/orders/{order_id}/served", response_model=StatusChangeResponse)
def mark_served(order_id: int, service: KitchenService = Depends(get_kitchen_service),
                staff: str = Depends(get_current_staff)):
    return StatusChangeResponse(order_id=order_id, status=service.mark_served(order_id, staff))


@router.post("/orders/{order_id}/pending", response_model=StatusChangeResponse)
def mark_pending(order_id: int, service: KitchenService = Depends(get_kitchen_service),
                 staff: str = Depends(get_current_staff)):
    """撤销出餐"""
    return StatusChangeResponse(order_id=order_id, status=service.mark_pending(order_id, staff))


@router.post("/orders/{order_id}/cancel", response_model=StatusChangeResponse)
def cancel_order(order_id: int, service: KitchenService = Depends(get_kitchen_service),
                 staff: str = Depends(get_current_staff)):
    """取消订单，释放其占用的时段容量"""
    return StatusChangeResponse(order_id=order_id, status=service.cancel(order_id, staff))
