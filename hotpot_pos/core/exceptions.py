"""
自定义异常类
提供更精确的错误处理和异常信息
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """应用基础异常类"""

    default_code = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(BaseApplicationError):
    """数据库相关异常"""
    default_code = "DATABASE_ERROR"


class ConcurrencyError(BaseApplicationError):
    """并发控制错误"""
    default_code = "CONCURRENCY_ERROR"


class AuthenticationError(BaseApplicationError):
    """认证相关异常"""
    default_code = "AUTHENTICATION_REQUIRED"


class ValidationError(BaseApplicationError):
    """数据验证异常"""
    default_code = "VALIDATION_ERROR"


class BusinessLogicError(BaseApplicationError):
    """业务逻辑异常"""
    default_code = "BUSINESS_RULE_VIOLATION"


class BookingClosedError(BusinessLogicError):
    """当前不在预订窗口内"""
    default_code = "BOOKING_CLOSED"

    def __init__(self, message: str = "目前未開放預訂"):
        super().__init__(message)


class StoreClosedError(BusinessLogicError):
    """店家已打烊"""
    default_code = "STORE_CLOSED"

    def __init__(self, message: str = "店家已打烊，暫停接單"):
        super().__init__(message)


class InvalidPickupSlotError(BusinessLogicError):
    """取餐时段不合法或已不可选"""
    default_code = "INVALID_PICKUP_SLOT"

    def __init__(self, message: str = "取餐時間不合法，請重新選擇",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class SlotCapacityExceededError(BusinessLogicError):
    """时段锅数容量不足"""
    default_code = "SLOT_CAPACITY_EXCEEDED"

    def __init__(self, slot: str, remaining: int, requested: int, cart_pots: int = 0):
        over_by = cart_pots + requested - remaining
        super().__init__(
            f"您選擇的 {slot} 時段已額滿（剩餘 {remaining} 鍋，購物車已有 {cart_pots} 鍋），請改選其他取餐時間。",
            details={
                "slot": slot,
                "remaining": remaining,
                "requested": requested,
                "cart_pots": cart_pots,
                "over_by": over_by,
            },
        )


class DailyLimitExceededError(BusinessLogicError):
    """每日限量品项已超量"""
    default_code = "DAILY_LIMIT_EXCEEDED"

    def __init__(self, item_name: str, remaining: int, requested: int):
        super().__init__(
            f"抱歉，{item_name} 今日剩餘 {remaining} 鍋",
            details={"item_name": item_name, "remaining": remaining, "requested": requested},
        )


class CapacityUnknownError(BaseApplicationError):
    """容量读取失败，无法确认"""
    default_code = "CAPACITY_UNKNOWN"

    def __init__(self, message: str = "無法確認時段容量，請稍後再試"):
        super().__init__(message)


class OrderNotFoundError(BusinessLogicError):
    """订单不存在异常"""
    default_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: int):
        super().__init__("訂單不存在", details={"order_id": order_id})


class InvalidStatusTransitionError(BusinessLogicError):
    """订单状态流转不合法"""
    default_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, target: str):
        super().__init__(
            f"訂單狀態為 {current}，無法變更為 {target}",
            details={"current": current, "target": target},
        )
