"""
@description 测试公共夹具
@responsibility 提供内存 SQLite 数据库和干净的全局缓存
"""

import pytest
import pytest_asyncio

from app.core import database
from app.core.cache import cache as memory_cache


@pytest.fixture(autouse=True)
def clean_cache():
    memory_cache.clear()
    yield
    memory_cache.clear()


@pytest_asyncio.fixture
async def memory_db():
    """将全局引擎切换到内存 SQLite 并建表"""
    original_url = database.DATABASE_URL
    database.configure_database("sqlite+aiosqlite:///:memory:")
    await database.init_db()
    yield database.engine
    await database.dispose_engine()
    database.configure_database(original_url)
