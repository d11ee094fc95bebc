"""
@description 异步数据库连接管理
@responsibility 提供 SQLAlchemy 异步引擎、会话管理、数据库初始化、超时重试和 SELECT 结果缓存
"""

import asyncio
import json
import re
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger
from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.cache import cache as memory_cache

DATABASE_URL = "sqlite+aiosqlite:///./db/data.db"

_max_retries = 2
_slow_query_ms = 2000

Base = declarative_base()


def _create_engine(url: str) -> AsyncEngine:
    kwargs: dict[str, Any] = {"echo": False}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # 内存库需要共享同一个连接，否则每个连接都是一个空库
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


engine = _create_engine(DATABASE_URL)

async_session_local = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def configure_database(
    url: str,
    max_retries: Optional[int] = None,
    slow_query_ms: Optional[int] = None,
) -> None:
    """根据配置重建引擎与会话工厂"""
    global engine, async_session_local, DATABASE_URL, _max_retries, _slow_query_ms

    DATABASE_URL = url
    engine = _create_engine(url)
    async_session_local = sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    if max_retries is not None:
        _max_retries = max_retries
    if slow_query_ms is not None:
        _slow_query_ms = slow_query_ms

    logger.info(f"数据库已配置: {make_url(url).render_as_string(hide_password=True)}")


async def dispose_engine() -> None:
    await engine.dispose()


async def init_db():
    """
    初始化数据库，创建所有表
    """
    # 导入所有模型，确保在 Base.metadata 中注册
    from app.models.view_event import ArticleViewEvent
    from app.models.site_config import SiteConfigEntry

    url = make_url(DATABASE_URL)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def get_session():
    """
    异步会话上下文管理器
    """
    async with async_session_local() as session:
        try:
            yield session
        finally:
            await session.close()


async def check_database_connection() -> bool:
    """数据库健康检查"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"[db] 健康检查失败: {e}")
        return False


def _is_timeout_error(error: Exception) -> bool:
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, sa_exc.TimeoutError)):
        return True
    if isinstance(error, sa_exc.OperationalError):
        message = str(error.orig if error.orig is not None else error).lower()
        return "timed out" in message or "timeout" in message
    return False


def _one_line(sql: str, limit: int) -> str:
    return " ".join(sql.split())[:limit]


async def execute_with_retry(
    sql: str,
    params: Optional[dict] = None,
    max_retries: Optional[int] = None,
) -> Union[list[dict], int]:
    """
    执行 SQL 并提交，仅在超时错误时按指数退避重试

    Returns:
        返回行的语句返回 list[dict]，其余语句返回受影响行数
    """
    retries = _max_retries if max_retries is None else max_retries
    last_error: Optional[Exception] = None

    for attempt in range(retries + 1):
        start = time.perf_counter()
        try:
            async with engine.begin() as conn:
                result = await conn.execute(text(sql), params or {})
                if result.returns_rows:
                    rows: Union[list[dict], int] = [
                        dict(row) for row in result.mappings().all()
                    ]
                else:
                    rows = result.rowcount

            duration_ms = (time.perf_counter() - start) * 1000
            if duration_ms > _slow_query_ms:
                logger.warning(
                    f"[db] 慢查询 ({duration_ms:.0f}ms) attempt={attempt} "
                    f'sql="{_one_line(sql, 180)}"'
                )
            return rows
        except Exception as e:
            last_error = e
            if not _is_timeout_error(e):
                raise

            duration_ms = (time.perf_counter() - start) * 1000
            logger.warning(
                f"[db] 第 {attempt} 次执行超时 ({duration_ms:.0f}ms) "
                f'sql="{_one_line(sql, 120)}"'
            )
            if attempt >= retries:
                raise

            backoff = min(1.0 * 2**attempt, 5.0)
            await asyncio.sleep(backoff)

    raise last_error


def build_select_cache_key(sql: str, params: Optional[dict] = None) -> str:
    key_base = re.sub(r"\s+", " ", sql).strip()
    key_vals = json.dumps(params, sort_keys=True, default=str) if params else ""
    return f"db:select:{key_base}:{key_vals}"


async def cached_execute(
    sql: str,
    params: Optional[dict] = None,
    ttl: Optional[float] = None,
) -> Union[list[dict], int]:
    """带缓存的查询：只缓存 SELECT，键由 SQL 和参数组成"""
    if not re.match(r"^\s*select", sql, re.IGNORECASE):
        return await execute_with_retry(sql, params)

    cache_key = build_select_cache_key(sql, params)
    return await memory_cache.get_or_set(
        cache_key, lambda: execute_with_retry(sql, params), ttl
    )
