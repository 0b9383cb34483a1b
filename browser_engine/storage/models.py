"""
Database models for task records
任务记录表
"""
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base


Base = declarative_base()


class AgentTask(Base):
    """
    浏览器自动化任务记录
    Browser automation task record
    """
    __tablename__ = "agent_tasks"

    id = Column(String(36), primary_key=True, comment="任务 UUID")
    url = Column(Text, nullable=False, comment="目标 URL")
    actions = Column(JSON, nullable=False, default=list, comment="提交的动作序列")
    status = Column(String(20), nullable=False, default="pending", comment="pending/running/done/error")
    logs = Column(JSON, nullable=False, default=list, comment="所有尝试拼接后的执行日志")
    screenshot_path = Column(Text, nullable=True, comment="截图 key")
    error = Column(Text, nullable=True, comment="最终错误描述")
    attempts = Column(Integer, nullable=False, default=0, comment="实际尝试次数")

    created_at = Column(DateTime, default=datetime.utcnow, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, comment="最后更新时间")

    __table_args__ = (
        Index("ix_agent_tasks_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "actions": self.actions or [],
            "status": self.status,
            "logs": self.logs or [],
            "screenshotPath": self.screenshot_path,
            "error": self.error,
            "attempts": self.attempts,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
