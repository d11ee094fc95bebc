"""
@description 数据库工具函数测试
@responsibility 验证健康检查、超时重试和 SELECT 缓存
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import exc as sa_exc

from app.core import database
from app.core.cache import cache as memory_cache
from app.core.database import (
    build_select_cache_key,
    cached_execute,
    check_database_connection,
    execute_with_retry,
)


def _failing_engine(error: Exception) -> MagicMock:
    """engine.begin() 进入时抛出指定异常"""
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(side_effect=error)
    ctx.__aexit__ = AsyncMock(return_value=None)
    engine = MagicMock()
    engine.begin = MagicMock(return_value=ctx)
    return engine


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy(self, memory_db):
        assert await check_database_connection() is True

    @pytest.mark.asyncio
    async def test_unhealthy_returns_false(self):
        ctx = MagicMock()
        ctx.__aenter__ = AsyncMock(side_effect=ConnectionRefusedError("refused"))
        ctx.__aexit__ = AsyncMock(return_value=None)
        engine = MagicMock()
        engine.connect = MagicMock(return_value=ctx)

        with patch.object(database, "engine", engine):
            assert await check_database_connection() is False


class TestExecuteWithRetry:
    @pytest.mark.asyncio
    async def test_select_returns_row_dicts(self, memory_db):
        rows = await execute_with_retry("SELECT 1 AS one, 'a' AS letter")
        assert rows == [{"one": 1, "letter": "a"}]

    @pytest.mark.asyncio
    async def test_write_returns_rowcount(self, memory_db):
        count = await execute_with_retry(
            "INSERT INTO site_config (name, value) VALUES (:name, :value)",
            {"name": "title", "value": "Hi"},
        )
        assert count == 1

    @pytest.mark.asyncio
    async def test_timeout_is_retried_with_backoff(self):
        engine = _failing_engine(TimeoutError("timed out"))

        with patch.object(database, "engine", engine), patch(
            "app.core.database.asyncio.sleep", new=AsyncMock()
        ) as mock_sleep:
            with pytest.raises(TimeoutError):
                await execute_with_retry("SELECT 1", max_retries=3)

        assert engine.begin.call_count == 4
        assert [call.args[0] for call in mock_sleep.await_args_list] == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_backoff_is_capped(self):
        engine = _failing_engine(sa_exc.TimeoutError("QueuePool limit"))

        with patch.object(database, "engine", engine), patch(
            "app.core.database.asyncio.sleep", new=AsyncMock()
        ) as mock_sleep:
            with pytest.raises(sa_exc.TimeoutError):
                await execute_with_retry("SELECT 1", max_retries=5)

        assert [call.args[0] for call in mock_sleep.await_args_list] == [
            1.0,
            2.0,
            4.0,
            5.0,
            5.0,
        ]

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        engine = _failing_engine(ValueError("syntax error"))

        with patch.object(database, "engine", engine), patch(
            "app.core.database.asyncio.sleep", new=AsyncMock()
        ) as mock_sleep:
            with pytest.raises(ValueError):
                await execute_with_retry("SELEC 1", max_retries=3)

        assert engine.begin.call_count == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_slow_query_is_logged(self, memory_db):
        with patch.object(database, "_slow_query_ms", -1), patch(
            "app.core.database.logger"
        ) as mock_logger:
            await execute_with_retry("SELECT 1")

        mock_logger.warning.assert_called_once()
        assert "慢查询" in mock_logger.warning.call_args.args[0]


class TestCachedExecute:
    def test_cache_key_normalizes_whitespace(self):
        key = build_select_cache_key("SELECT *\n   FROM  t  WHERE id = :id", {"id": 1})
        assert key == 'db:select:SELECT * FROM t WHERE id = :id:{"id": 1}'

    def test_cache_key_without_params(self):
        assert build_select_cache_key(" SELECT 1 ") == "db:select:SELECT 1:"

    @pytest.mark.asyncio
    async def test_select_is_cached(self):
        with patch(
            "app.core.database.execute_with_retry",
            new=AsyncMock(return_value=[{"n": 1}]),
        ) as mock_execute:
            first = await cached_execute("select n from t where id = :id", {"id": 3})
            second = await cached_execute("select n from t where id = :id", {"id": 3})

        assert first == second == [{"n": 1}]
        mock_execute.assert_awaited_once()
        assert len(memory_cache) == 1

    @pytest.mark.asyncio
    async def test_different_params_use_different_keys(self):
        with patch(
            "app.core.database.execute_with_retry",
            new=AsyncMock(side_effect=[[{"n": 1}], [{"n": 2}]]),
        ) as mock_execute:
            assert await cached_execute("SELECT n FROM t WHERE id = :id", {"id": 1}) == [
                {"n": 1}
            ]
            assert await cached_execute("SELECT n FROM t WHERE id = :id", {"id": 2}) == [
                {"n": 2}
            ]

        assert mock_execute.await_count == 2

    @pytest.mark.asyncio
    async def test_non_select_bypasses_cache(self):
        with patch(
            "app.core.database.execute_with_retry", new=AsyncMock(return_value=1)
        ) as mock_execute:
            await cached_execute("UPDATE t SET n = 1")
            await cached_execute("UPDATE t SET n = 1")

        assert mock_execute.await_count == 2
        assert len(memory_cache) == 0
