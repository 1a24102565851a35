"""
鍋物外帶取餐服务 - 主应用入口
提供预订窗口、取餐时段容量与结账下单的后端API服务

主要功能模块：
- 营业日预订窗口与15分钟取餐时段
- 时段锅数容量与每日限量品项检查
- 结账下单（事务内复核容量）
- 厨房时段看板与订单状态
- 时段变更推送（SSE）

技术栈：FastAPI + DuckDB + JWT认证
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .api import api_router
from .config.settings import Settings, settings
from .core.database import DatabaseManager, db_manager
from .core.error_handler import (
    application_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.exceptions import BaseApplicationError
from .services.live_feed import ChangeBus, change_bus

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时初始化数据库
    try:
        app.state.db.init_database()
    except BaseApplicationError as e:
        # 不要让应用启动失败，首次请求时会重试建立连接
        logger.error("database initialization failed: %s", e.message)

    yield

    app.state.db.close()


def create_app(db: Optional[DatabaseManager] = None, config: Optional[Settings] = None,
               bus: Optional[ChangeBus] = None) -> FastAPI:
    """创建FastAPI应用"""
    config = config or settings
    app = FastAPI(
        title=config.api_title,
        version=config.api_version,
        description="鍋物外帶取餐時段與容量API",
        debug=config.debug,
        lifespan=lifespan
    )
    app.state.db = db or db_manager
    app.state.settings = config
    app.state.bus = bus or change_bus

    # 添加中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册异常处理器
    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # 注册路由
    app.include_router(api_router, prefix=config.api_prefix)

    # 健康检查
    @app.get("/health")
    def health_check(request: Request):
        try:
            request.app.state.db.execute_one("SELECT 1")
            return {
                "status": "healthy",
                "version": config.api_version,
                "database": "connected"
            }
        except BaseApplicationError as e:
            return {
                "status": "unhealthy",
                "version": config.api_version,
                "database": f"error: {e.message}"
            }

    @app.get("/")
    async def root():
        return {
            "name": config.api_title,
            "version": config.api_version,
            "description": "鍋物外帶取餐時段與容量API"
        }

    return app


# 应用实例
app = create_app()
