"""
店家营业状态路由
"""

from fastapi import APIRouter, Depends

from ...core.security import get_current_staff
from ...schemas.store import StoreStatus, StoreUpdateRequest
from ...services.store_service import StoreService
from ..deps import get_store_service

router = APIRouter()


@router.get("", response_model=StoreStatus)
def get_store_status(service: StoreService = Depends(get_store_service)):
    return StoreStatus(is_open=service.is_open())


@router.put("", response_model=StoreStatus)
def update_store_status(req: StoreUpdateRequest, service: StoreService = Depends(get_store_service),
                        staff: str = Depends(get_current_staff)):
    """切换营业状态（员工）"""
    return StoreStatus(is_open=service.set_open(req.is_open, staff))
