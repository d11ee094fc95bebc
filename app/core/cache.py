"""
@description 进程内 TTL 缓存
@responsibility 为配置读取、查询结果等幂等读操作提供带过期时间的键值缓存
"""

import inspect
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

CACHE_DURATION: float = 5 * 60

_MISSING = object()


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float


class TTLCache:
    """
    带过期时间的内存缓存

    - 过期条目按需惰性淘汰（get / invalidate_prefix 时清理），没有后台清扫
    - 键由调用方保证不冲突，例如 "db:select:<sql>:<params>"
    - 只在单个事件循环内使用，不做跨进程共享
    """

    def __init__(
        self,
        default_ttl: float = CACHE_DURATION,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store: dict[str, CacheEntry[Any]] = {}
        self._default_ttl = default_ttl
        self._clock = clock

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @default_ttl.setter
    def default_ttl(self, value: float) -> None:
        self._default_ttl = value

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: str, default: Any = None) -> Any:
        """返回未过期的缓存值，缺失或过期时返回 default"""
        entry = self._store.get(key)
        if entry is None:
            return default
        if self._clock() > entry.expires_at:
            del self._store[key]
            return default
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """写入缓存，覆盖同名条目"""
        duration = self._default_ttl if ttl is None else ttl
        self._store[key] = CacheEntry(value=value, expires_at=self._clock() + duration)

    async def get_or_set(
        self, key: str, producer: Callable[[], Any], ttl: Optional[float] = None
    ) -> Any:
        """
        命中则直接返回，未命中时调用 producer 生成并写入缓存

        producer 可以是同步函数或返回 awaitable 的函数；
        producer 抛出的异常原样向上传递，且不会写入缓存。
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        value = producer()
        if inspect.isawaitable(value):
            value = await value

        self.set(key, value, ttl)
        return value

    def invalidate_prefix(self, prefix: str) -> int:
        """删除所有以 prefix 开头的键，返回删除数量"""
        keys = [key for key in self._store if key.startswith(prefix)]
        for key in keys:
            del self._store[key]
        return len(keys)

    def clear(self) -> None:
        self._store.clear()


# 进程级单例
cache = TTLCache()
