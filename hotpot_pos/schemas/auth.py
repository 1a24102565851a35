"""
员工认证相关的请求/响应模式
"""

from pydantic import BaseModel, Field


class StaffTokenRequest(BaseModel):
    """口令换取员工 token"""
    passphrase: str = Field(..., description="员工口令")
    staff_name: str = Field("kitchen", description="操作人名称，写入审计日志")


class StaffTokenResponse(BaseModel):
    """员工 token"""
    token: str = Field(..., description="JWT认证token")
    token_type: str = Field("bearer", description="认证类型")
    expires_in_hours: int = Field(..., description="有效小时数")
