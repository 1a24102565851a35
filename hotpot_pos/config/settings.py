import os
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # 数据库配置
    database_url: str = "duckdb://./data/hotpot_pos.duckdb"

    # JWT配置（厨房/后台接口）
    jwt_secret_key: str = "your-secret-key"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 12
    staff_passphrase: Optional[str] = None

    # API配置
    api_title: str = "鍋物外帶 API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # 营业日与时段
    timezone: str = "Asia/Taipei"
    service_weekdays: List[int] = [2, 5]  # Python weekday：周三、周六
    service_open_time: str = "16:30"
    service_close_time: str = "20:30"
    slot_minutes: int = Field(15, gt=0)

    # 容量
    capacity_per_slot: int = 7
    pot_marker: str = "鍋"
    daily_limited_item_name: str = "牛雜鍋"
    daily_limit: int = 50

    # 前端刷新节奏
    poll_interval_seconds: int = 30
    change_debounce_ms: int = 500

    # 开发模式
    debug: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False


def load_settings(env: Optional[str] = None) -> Settings:
    """按 HOTPOT_ENV 选择配置类"""
    env = env or os.getenv("HOTPOT_ENV", "")
    if env == "development":
        from .environments.development import DevelopmentSettings
        return DevelopmentSettings()
    return Settings()


# 全局设置实例
settings = load_settings()
