"""
@description 文章浏览事件模型
@responsibility 持久化每一次文章浏览，字段长度与数据库列宽保持一致
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String

from app.core.database import Base

# 列宽：IPv6 最长 45 字符
IP_MAX_LENGTH = 45
USER_AGENT_MAX_LENGTH = 1024
REFERRER_MAX_LENGTH = 2048


class ArticleViewEvent(Base):
    __tablename__ = "article_view_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    article_id = Column(Integer, nullable=True)
    ip = Column(String(IP_MAX_LENGTH), nullable=True)
    user_agent = Column(String(USER_AGENT_MAX_LENGTH), nullable=True)
    referrer = Column(String(REFERRER_MAX_LENGTH), nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    user_id = Column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_article_view_events_article_created", "article_id", "created_at"),
        Index("ix_article_view_events_user_id", "user_id"),
    )
