"""
取餐时段路由
顾客下单页读取预订窗口与可选时段
"""

from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends

from ...schemas.slot import SlotListResponse
from ...services.availability_service import AvailabilityService
from ..deps import get_availability_service, get_clock

router = APIRouter()


@router.get("", response_model=SlotListResponse)
def list_slots(service: AvailabilityService = Depends(get_availability_service),
               clock: Callable[[], datetime] = Depends(get_clock)):
    """
    当前预订窗口的营业日与各时段余量

    不在预订窗口时 booking_open=false 且 slots 为空。
    """
    return service.snapshot(clock())
