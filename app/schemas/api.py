"""
@description API 请求/响应模型
@responsibility 定义所有 API 接口的数据结构
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field


class TrackViewRequest(BaseModel):
    article_id: Optional[int] = Field(None, description="文章 ID")
    user_id: Optional[int] = Field(None, description="登录用户 ID")
    referrer: Optional[str] = Field(
        None, description="来源页面（可选，默认取 Referer 请求头）"
    )


class TrackViewResponse(BaseModel):
    queued: bool = Field(..., description="是否已进入缓冲区")
    pending: int = Field(..., description="缓冲区中待写库的事件数")


class ArticleViewsResponse(BaseModel):
    article_id: int = Field(..., description="文章 ID")
    views: int = Field(..., description="累计浏览量（已写库部分）")


class FlushResponse(BaseModel):
    pending: int = Field(..., description="写库后仍在缓冲区中的事件数")
    flushed_total: int = Field(..., description="累计写库事件数")


class SiteConfigResponse(BaseModel):
    settings: dict[str, Optional[str]] = Field(..., description="全部站点配置")


class SiteConfigItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=191, description="配置名")
    value: Optional[str] = Field(None, description="配置值")


class UpdateSiteConfigRequest(BaseModel):
    items: list[SiteConfigItem] = Field(..., min_length=1, description="待更新的配置项")


class UpdateSiteConfigResponse(BaseModel):
    updated: list[str] = Field(..., description="更新成功的配置名")


class BufferStatus(BaseModel):
    pending: int = Field(..., description="待写库事件数")
    flushing: bool = Field(..., description="是否正在写库")
    timer_scheduled: bool = Field(..., description="是否已设置定时写库")
    flushed_total: int = Field(..., description="累计写库事件数")
    failed_flushes: int = Field(..., description="写库失败次数")
    last_flush_at: Optional[str] = Field(None, description="上次写库成功时间")


class StatusResponse(BaseModel):
    database_ok: bool = Field(..., description="数据库是否可用")
    cache_entries: int = Field(..., description="缓存条目数（含未清理的过期条目）")
    buffer: Optional[BufferStatus] = Field(None, description="浏览事件缓冲区状态")


class CacheInvalidateResponse(BaseModel):
    removed: int = Field(..., description="删除的缓存条目数")


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """统一 API 响应格式"""

    code: int = Field(..., description="响应码（0=成功，非0=错误）")
    message: str = Field(..., description="响应消息")
    data: Optional[T] = Field(None, description="响应数据")


def success_response(data: T, message: str = "操作成功") -> ApiResponse[T]:
    """创建成功响应"""
    return ApiResponse(code=0, message=message, data=data)


def error_response(code: int, message: str, data: Optional[T] = None) -> ApiResponse[T]:
    """创建错误响应"""
    return ApiResponse(code=code, message=message, data=data)
