"""
@description FastAPI 应用入口
@responsibility 初始化应用、集成路由、创建浏览事件缓冲区、关闭时尽力写完剩余事件
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import settings, system, views
from app.api.system import init_system_router
from app.api.views import init_views_router
from app.core.cache import cache as memory_cache
from app.core.config import load_config
from app.core.database import configure_database, dispose_engine, init_db
from app.schemas.api import error_response, success_response
from app.tasks.analytics_buffer import ViewEventBuffer


config_obj = None
view_buffer: Optional[ViewEventBuffer] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global config_obj, view_buffer

    logger.info("应用启动中...")

    config_obj = load_config()
    logger.info("配置加载完成")

    configure_database(
        config_obj.database.url,
        max_retries=config_obj.database.max_retries,
        slow_query_ms=config_obj.database.slow_query_ms,
    )
    await init_db()
    logger.info("数据库初始化完成")

    memory_cache.default_ttl = config_obj.cache.default_ttl

    view_buffer = ViewEventBuffer(
        buffer_limit=config_obj.analytics.buffer_limit,
        flush_interval=config_obj.analytics.flush_interval,
    )
    init_views_router(view_buffer)
    init_system_router(view_buffer)
    logger.info("浏览事件缓冲区已就绪")

    yield

    if view_buffer:
        await view_buffer.stop()
        logger.info("浏览事件缓冲区已关闭")

    await dispose_engine()
    logger.info("应用已关闭")


app = FastAPI(
    title="内容站点后端",
    description="文章浏览统计、站点配置与缓存管理",
    version="1.0.0",
    lifespan=lifespan,
)


# 全局异常处理器
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """处理 HTTP 异常"""
    logger.info(f"HTTP 异常处理器被调用: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code=exc.status_code, message=exc.detail).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """处理请求参数验证错误"""
    logger.info(f"验证错误处理器被调用: {len(exc.errors())} 个错误")
    errors = [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=error_response(
            code=422, message="请求参数验证失败", data={"errors": errors}
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """处理通用异常"""
    logger.info(f"通用异常处理器被调用: {type(exc).__name__}")
    logger.exception(f"服务器内部错误: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content=error_response(code=500, message="服务器内部错误").model_dump(),
    )


app.include_router(views.router, prefix="/api", tags=["views"])
app.include_router(settings.router, prefix="/api", tags=["settings"])
app.include_router(system.router, prefix="/api", tags=["system"])


@app.get("/")
async def root():
    return success_response(
        data={"message": "内容站点后端 API", "version": "1.0.0"},
        message="服务运行中",
    )


@app.get("/health")
async def health_check():
    return success_response(data={"status": "healthy"}, message="健康检查通过")
