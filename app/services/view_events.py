"""
@description 浏览事件持久化
@responsibility 批量写入浏览事件，查询文章浏览量（带缓存），写入后使浏览量缓存失效
"""

from typing import Iterable, Optional

from sqlalchemy import insert

from app.core.cache import cache as memory_cache
from app.core.database import build_select_cache_key, cached_execute, get_session
from app.models.view_event import ArticleViewEvent
from app.schemas.view_event import ViewEvent

VIEW_COUNT_SQL = "SELECT COUNT(*) AS views FROM article_view_events WHERE article_id = :article_id"

# 覆盖所有文章 ID 的浏览量缓存键
VIEW_COUNT_CACHE_PREFIX = build_select_cache_key(VIEW_COUNT_SQL)


async def insert_view_events(events: Iterable[ViewEvent]) -> int:
    """
    在一个事务中批量插入浏览事件

    整批成功或整批失败，不处理部分写入。
    """
    rows = [event.to_row() for event in events]
    if not rows:
        return 0

    async with get_session() as session:
        await session.execute(insert(ArticleViewEvent), rows)
        await session.commit()

    memory_cache.invalidate_prefix(VIEW_COUNT_CACHE_PREFIX)
    return len(rows)


async def count_article_views(article_id: int, ttl: Optional[float] = None) -> int:
    """文章累计浏览量，结果按 SELECT 缓存"""
    rows = await cached_execute(VIEW_COUNT_SQL, {"article_id": article_id}, ttl)
    if not rows:
        return 0
    return int(rows[0]["views"] or 0)
