"""
@description 浏览事件数据结构
@responsibility 定义缓冲区中流转的不可变浏览事件，以及写库前的字段截断
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.view_event import (
    IP_MAX_LENGTH,
    REFERRER_MAX_LENGTH,
    USER_AGENT_MAX_LENGTH,
)
from app.utils.helpers import truncate_field


class ViewEvent(BaseModel):
    """一次文章浏览"""

    model_config = ConfigDict(frozen=True)

    article_id: Optional[int] = Field(None, description="文章 ID")
    ip: Optional[str] = Field(None, description="客户端 IP")
    user_agent: Optional[str] = Field(None, description="User-Agent")
    referrer: Optional[str] = Field(None, description="来源页面")
    created_at: Optional[datetime] = Field(None, description="浏览时间")
    user_id: Optional[int] = Field(None, description="登录用户 ID")

    def to_row(self) -> dict:
        """转换为 article_view_events 表的一行，超长字段截断到列宽"""
        return {
            "article_id": self.article_id,
            "ip": truncate_field("ip", self.ip, IP_MAX_LENGTH),
            "user_agent": truncate_field(
                "user_agent", self.user_agent, USER_AGENT_MAX_LENGTH
            ),
            "referrer": truncate_field("referrer", self.referrer, REFERRER_MAX_LENGTH),
            "created_at": self.created_at or datetime.now(),
            "user_id": self.user_id,
        }
