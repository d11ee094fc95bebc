"""
@description 站点配置模型
@responsibility 以键值对形式保存后台可修改的站点设置
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from app.core.database import Base


class SiteConfigEntry(Base):
    __tablename__ = "site_config"

    name = Column(String(191), primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
