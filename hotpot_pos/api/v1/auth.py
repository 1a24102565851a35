"""
员工认证路由
以员工口令换取厨房/后台接口使用的 JWT
"""

import logging

from fastapi import APIRouter, Depends

from ...core.exceptions import AuthenticationError
from ...core.security import SecurityManager, get_security_manager
from ...schemas.auth import StaffTokenRequest, StaffTokenResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/staff-token", response_model=StaffTokenResponse)
def issue_staff_token(req: StaffTokenRequest, manager: SecurityManager = Depends(get_security_manager)):
    """
    员工口令换 token

    未配置口令（staff_passphrase 为空）时所有请求都会被拒绝。
    """
    if not manager.verify_passphrase(req.passphrase):
        logger.warning("staff token rejected for %s", req.staff_name)
        raise AuthenticationError("口令錯誤")

    return StaffTokenResponse(
        token=manager.create_staff_token(req.staff_name),
        expires_in_hours=manager.config.jwt_expire_hours,
    )
