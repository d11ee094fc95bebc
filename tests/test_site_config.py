"""
@description 站点配置服务测试
@responsibility 验证配置读写、缓存命中与写入后刷新
"""

from unittest.mock import patch

import pytest

from app.core.cache import cache as memory_cache
from app.core.database import execute_with_retry
from app.services.site_config import (
    CACHE_KEY,
    get_all_site_config,
    get_site_config,
    load_site_config,
    set_site_config,
)


class TestSiteConfig:
    @pytest.mark.asyncio
    async def test_empty_table(self, memory_db):
        assert await get_all_site_config() == {}
        assert await get_site_config("missing") is None
        assert await get_site_config("missing", "fallback") == "fallback"

    @pytest.mark.asyncio
    async def test_set_then_get(self, memory_db):
        assert await set_site_config("site_title", "Hello") is True
        assert await set_site_config("footer", None) is True

        assert await get_site_config("site_title") == "Hello"
        assert await get_all_site_config() == {"site_title": "Hello", "footer": None}

    @pytest.mark.asyncio
    async def test_update_existing_key(self, memory_db):
        await set_site_config("site_title", "Hello")
        await set_site_config("site_title", "World")

        assert await get_site_config("site_title") == "World"

    @pytest.mark.asyncio
    async def test_reads_are_served_from_cache(self, memory_db):
        await set_site_config("site_title", "Hello")

        # 绕过服务直接改库，缓存中仍是旧值
        await execute_with_retry(
            "UPDATE site_config SET value = :value WHERE name = :name",
            {"value": "Changed", "name": "site_title"},
        )
        assert await get_site_config("site_title") == "Hello"

        reloaded = await load_site_config(force=True)
        assert reloaded["site_title"] == "Changed"
        assert memory_cache.get(CACHE_KEY) == reloaded

    @pytest.mark.asyncio
    async def test_load_failure_returns_empty(self):
        with patch(
            "app.services.site_config.get_session",
            side_effect=RuntimeError("db down"),
        ):
            assert await load_site_config() == {}

        assert memory_cache.get(CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_set_failure_returns_false(self):
        with patch(
            "app.services.site_config.get_session",
            side_effect=RuntimeError("db down"),
        ):
            assert await set_site_config("site_title", "Hello") is False
