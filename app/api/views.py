"""
@description 文章浏览统计接口
@responsibility 接收页面浏览上报并写入缓冲区，查询文章浏览量，手动触发写库
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from fastapi import APIRouter, HTTPException, Request

from app.schemas.api import (
    ApiResponse,
    ArticleViewsResponse,
    FlushResponse,
    TrackViewRequest,
    TrackViewResponse,
    success_response,
)
from app.schemas.view_event import ViewEvent
from app.services.view_events import count_article_views
from app.utils.helpers import get_client_ip

if TYPE_CHECKING:
    from app.tasks.analytics_buffer import ViewEventBuffer

router = APIRouter()

_view_buffer: Optional["ViewEventBuffer"] = None


def init_views_router(view_buffer: "ViewEventBuffer"):
    global _view_buffer
    _view_buffer = view_buffer


def _require_buffer() -> "ViewEventBuffer":
    if _view_buffer is None:
        raise HTTPException(status_code=503, detail="浏览事件缓冲区未初始化")
    return _view_buffer


@router.post("/views", response_model=ApiResponse[TrackViewResponse])
async def track_view(payload: TrackViewRequest, request: Request):
    view_buffer = _require_buffer()

    peer_host = request.client.host if request.client else None
    event = ViewEvent(
        article_id=payload.article_id,
        ip=get_client_ip(request.headers.get("x-forwarded-for"), peer_host),
        user_agent=request.headers.get("user-agent"),
        referrer=payload.referrer or request.headers.get("referer"),
        created_at=datetime.now(),
        user_id=payload.user_id,
    )
    view_buffer.enqueue(event)

    return success_response(
        data=TrackViewResponse(queued=True, pending=view_buffer.pending_count),
        message="浏览已记录",
    )


@router.get(
    "/views/articles/{article_id}", response_model=ApiResponse[ArticleViewsResponse]
)
async def get_article_views(article_id: int):
    views = await count_article_views(article_id)
    return success_response(
        data=ArticleViewsResponse(article_id=article_id, views=views),
        message="获取浏览量成功",
    )


@router.post("/views/flush", response_model=ApiResponse[FlushResponse])
async def flush_views():
    view_buffer = _require_buffer()
    await view_buffer.flush()
    return success_response(
        data=FlushResponse(
            pending=view_buffer.pending_count,
            flushed_total=view_buffer.flushed_total,
        ),
        message="写库完成",
    )
