"""
购物车容量检查路由
加入品项、确认配置品项、结账前由前端调用
"""

from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends

from ...schemas.order import GuardRequest, GuardResponse
from ...services.cart_guard import CartGuard
from ..deps import get_cart_guard, get_clock

router = APIRouter()


@router.post("/guard", response_model=GuardResponse)
def guard_cart(req: GuardRequest, guard: CartGuard = Depends(get_cart_guard),
               clock: Callable[[], datetime] = Depends(get_clock)):
    """被拒绝时仍返回 200，allowed=false 并附带原因与剩余量"""
    decision = guard.check_cart(req.stage, req.pickup_time, req.item, req.cart, clock())
    return GuardResponse(**decision.model_dump())
