"""
@description 系统状态接口
@responsibility 查询数据库、缓存和浏览事件缓冲区的运行状态，手动清理缓存
"""

from typing import TYPE_CHECKING, Optional

from fastapi import APIRouter, Query
from loguru import logger

from app.core.cache import cache as memory_cache
from app.core.database import check_database_connection
from app.schemas.api import (
    ApiResponse,
    BufferStatus,
    CacheInvalidateResponse,
    StatusResponse,
    success_response,
)

if TYPE_CHECKING:
    from app.tasks.analytics_buffer import ViewEventBuffer

router = APIRouter()

_view_buffer: Optional["ViewEventBuffer"] = None


def init_system_router(view_buffer: "ViewEventBuffer"):
    global _view_buffer
    _view_buffer = view_buffer


@router.get("/status", response_model=ApiResponse[StatusResponse])
async def get_status():
    buffer_status = None
    if _view_buffer is not None:
        buffer_status = BufferStatus(**_view_buffer.stats())

    return success_response(
        data=StatusResponse(
            database_ok=await check_database_connection(),
            cache_entries=len(memory_cache),
            buffer=buffer_status,
        ),
        message="获取系统状态成功",
    )


@router.delete("/cache", response_model=ApiResponse[CacheInvalidateResponse])
async def invalidate_cache(
    prefix: Optional[str] = Query(None, description="键前缀，不传则清空全部缓存"),
):
    if prefix:
        removed = memory_cache.invalidate_prefix(prefix)
        logger.info(f"缓存前缀 '{prefix}' 已失效，删除 {removed} 条")
    else:
        removed = len(memory_cache)
        memory_cache.clear()
        logger.info(f"缓存已清空，删除 {removed} 条")

    return success_response(
        data=CacheInvalidateResponse(removed=removed), message="缓存已清理"
    )
