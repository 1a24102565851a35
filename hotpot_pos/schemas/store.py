"""
店家营业状态的请求/响应模式
"""

from pydantic import BaseModel, Field


class StoreStatus(BaseModel):
    is_open: bool = Field(..., description="是否接单")


class StoreUpdateRequest(BaseModel):
    is_open: bool = Field(..., description="切换后的营业状态")
