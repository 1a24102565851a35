"""
安全相关功能
厨房/后台接口的员工 JWT：口令换 token，受保护路由校验 Bearer
"""

import hmac
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..config.settings import Settings, settings
from .exceptions import AuthenticationError

STAFF_ROLE = "staff"


class SecurityManager:
    """安全管理器"""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    def create_staff_token(self, staff_name: str, additional_claims: Dict[str, Any] = None) -> str:
        """创建员工JWT token"""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": staff_name,
            "role": STAFF_ROLE,
            "exp": now + timedelta(hours=self.config.jwt_expire_hours),
            "iat": now,
        }
        if additional_claims:
            payload.update(additional_claims)
        return jwt.encode(payload, self.config.jwt_secret_key, algorithm=self.config.jwt_algorithm)

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        """解码JWT token"""
        try:
            return jwt.decode(token, self.config.jwt_secret_key, algorithms=[self.config.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {e}")

    def get_staff_from_token(self, token: str) -> str:
        payload = self.decode_jwt_token(token)
        if payload.get("role") != STAFF_ROLE or not payload.get("sub"):
            raise AuthenticationError("Token is not a staff token")
        return payload["sub"]

    def verify_passphrase(self, passphrase: Optional[str]) -> bool:
        """校验员工口令；未配置口令时一律拒绝"""
        expected = self.config.staff_passphrase
        if not expected or not passphrase:
            return False
        return hmac.compare_digest(str(passphrase).strip().encode(), expected.encode())


# 全局安全管理器实例
security_manager = SecurityManager()

_bearer = HTTPBearer(auto_error=False)


def get_security_manager(request: Request) -> SecurityManager:
    """按应用绑定的配置构造安全管理器"""
    config = getattr(request.app.state, "settings", None)
    return SecurityManager(config) if config is not None else security_manager


async def get_current_staff(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    manager: SecurityManager = Depends(get_security_manager),
) -> str:
    """从Authorization header中提取并验证员工身份"""
    if credentials is None:
        raise AuthenticationError("missing bearer token")
    return manager.get_staff_from_token(credentials.credentials)
