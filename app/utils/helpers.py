"""
@description 通用工具函数
@responsibility 提供项目级别的辅助功能
"""

from __future__ import annotations
from typing import Optional

from loguru import logger


def truncate_field(name: str, value: Optional[object], limit: int) -> Optional[str]:
    """
    将字段转换为字符串并截断到 limit 个字符

    超长时记录警告日志，但不会抛出异常。

    Examples:
        >>> truncate_field("ip", "127.0.0.1", 45)
        '127.0.0.1'

        >>> truncate_field("ip", None, 45) is None
        True
    """
    if value is None:
        return None

    text = str(value)
    if len(text) > limit:
        logger.warning(f"[analytics-buffer] {name} 超过 {limit} 字符，已截断")
        return text[:limit]
    return text


def get_client_ip(
    forwarded_for: Optional[str], peer_host: Optional[str] = None
) -> Optional[str]:
    """
    解析客户端 IP

    优先取 X-Forwarded-For 的第一个地址（最靠近客户端的一跳），
    否则使用 socket 对端地址。

    Examples:
        >>> get_client_ip("203.0.113.7, 10.0.0.1", "10.0.0.2")
        '203.0.113.7'

        >>> get_client_ip(None, "10.0.0.2")
        '10.0.0.2'
    """
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer_host or None
