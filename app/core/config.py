"""
@description 配置管理模块
@responsibility 加载和验证 config.yaml，支持环境变量覆盖
"""

import os
import sys
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator


class DatabaseConfig(BaseModel):
    """数据库配置"""

    url: str = Field(
        default="sqlite+aiosqlite:///./db/data.db", description="异步数据库连接串"
    )
    max_retries: int = Field(default=2, ge=0, description="超时重试次数")
    slow_query_ms: int = Field(default=2000, ge=0, description="慢查询阈值（毫秒）")


class AnalyticsConfig(BaseModel):
    """浏览事件缓冲配置"""

    buffer_limit: int = Field(default=1000, description="缓冲区容量，达到后立即写库")
    flush_interval: float = Field(default=120.0, description="定时写库间隔（秒）")

    @field_validator("buffer_limit", "flush_interval")
    @classmethod
    def _must_be_positive(cls, value):
        if value <= 0:
            raise ValueError("必须大于 0")
        return value


class CacheConfig(BaseModel):
    """内存缓存配置"""

    default_ttl: float = Field(default=300.0, description="默认过期时间（秒）")

    @field_validator("default_ttl")
    @classmethod
    def _ttl_positive(cls, value):
        if value <= 0:
            raise ValueError("default_ttl 必须大于 0")
        return value


class Config(BaseModel):
    """全局配置"""

    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="数据库配置"
    )
    analytics: AnalyticsConfig = Field(
        default_factory=AnalyticsConfig, description="浏览事件缓冲配置"
    )
    cache: CacheConfig = Field(default_factory=CacheConfig, description="缓存配置")


def get_config_path() -> Path:
    """获取配置文件路径"""
    # 优先使用 CONFIG_PATH 环境变量，否则使用项目根目录的 config.yaml
    if config_path_str := os.environ.get("CONFIG_PATH"):
        return Path(config_path_str)
    return Path(__file__).parent.parent.parent / "config.yaml"


def load_config() -> Config:
    """加载配置文件并应用环境变量覆盖"""
    config_path = get_config_path()

    # 配置文件不存在时生成模板并退出
    if not config_path.exists():
        _generate_config_template(config_path)
        print(f"错误: 配置文件不存在: {config_path}")
        print(f"已生成配置模板: {config_path.parent / 'config.example.yaml'}")
        sys.exit(1)

    with open(config_path) as f:
        config_data = yaml.safe_load(f) or {}

    config = Config(**config_data)

    if database_url := os.environ.get("DATABASE_URL"):
        config.database.url = database_url
    if max_retries := os.environ.get("DB_MAX_RETRIES"):
        config.database.max_retries = int(max_retries)
    if slow_query_ms := os.environ.get("DB_SLOW_QUERY_MS"):
        config.database.slow_query_ms = int(slow_query_ms)

    return config


def _generate_config_template(config_path: Path) -> None:
    """生成配置模板文件"""
    template_path = config_path.parent / "config.example.yaml"

    if template_path.exists():
        return

    template_content = """# 数据库配置
database:
  # 异步连接串，可通过 DATABASE_URL 环境变量覆盖
  url: "sqlite+aiosqlite:///./db/data.db"
  # 仅在超时错误时重试的次数
  max_retries: 2
  # 超过该耗时（毫秒）的查询会记录警告日志
  slow_query_ms: 2000

# 文章浏览事件缓冲配置
analytics:
  # 缓冲区达到该数量时立即批量写库
  buffer_limit: 1000
  # 未达到容量时的定时写库间隔（秒）
  flush_interval: 120

# 内存缓存配置
cache:
  # 默认过期时间（秒）
  default_ttl: 300
"""

    with open(template_path, "w") as f:
        f.write(template_content)
