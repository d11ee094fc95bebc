"""
@description 站点配置服务
@responsibility 读写 site_config 表，整表结果缓存在内存中，写入后强制刷新缓存
"""

from datetime import datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy import select

from app.core.cache import cache as memory_cache
from app.core.database import get_session
from app.models.site_config import SiteConfigEntry

CACHE_KEY = "site-config:all"


async def load_site_config(force: bool = False) -> dict[str, Optional[str]]:
    """加载全部站点配置，失败时返回空字典"""
    if not force:
        cached = memory_cache.get(CACHE_KEY)
        if cached is not None:
            return cached

    try:
        async with get_session() as session:
            result = await session.execute(
                select(SiteConfigEntry.name, SiteConfigEntry.value)
            )
            site_config = {name: value for name, value in result.all()}
    except Exception as e:
        logger.error(f"[site-config] 加载失败: {e}")
        return {}

    memory_cache.set(CACHE_KEY, site_config)
    return site_config


async def get_site_config(key: str, default: Any = None) -> Any:
    """读取单项配置，不存在时返回 default"""
    site_config = await load_site_config()
    return site_config.get(key, default)


async def get_all_site_config() -> dict[str, Optional[str]]:
    return await load_site_config()


async def set_site_config(key: str, value: Optional[str]) -> bool:
    """写入（或更新）一项配置，并重新加载缓存"""
    try:
        async with get_session() as session:
            entry = await session.get(SiteConfigEntry, key)
            if entry is None:
                session.add(SiteConfigEntry(name=key, value=value))
            else:
                entry.value = value
                entry.updated_at = datetime.now()
            await session.commit()
    except Exception as e:
        logger.error(f"[site-config] 保存 {key} 失败: {e}")
        return False

    await load_site_config(force=True)
    return True
