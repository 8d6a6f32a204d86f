"""MemoryEntry - 记忆条目数据结构"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..events import Event


@dataclass
class MemoryEntry:
    """
    记忆条目 - 从会话事件中提取的一段可检索内容

    关联字段：
    - app_name / user_id: 检索隔离维度
    - session_id: 来源会话
    - author: 记忆来源（user 或 Agent 名称）
    """

    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    id: Optional[str] = None
    app_name: str = ""
    user_id: str = ""
    session_id: Optional[str] = None
    author: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_event(
        cls,
        event: 'Event',
        app_name: str = "",
        user_id: str = "",
        session_id: str = "",
    ) -> MemoryEntry:
        """从 Event 创建记忆条目（只取文本）"""
        return cls(
            content=event.text,
            timestamp=datetime.fromtimestamp(event.timestamp),
            app_name=app_name,
            user_id=user_id,
            session_id=session_id,
            author=event.author,
            metadata={'event_id': event.id},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'content': self.content,
            'timestamp': self.timestamp.isoformat(),
            'app_name': self.app_name,
            'user_id': self.user_id,
            'session_id': self.session_id,
            'author': self.author,
            'metadata': self.metadata,
        }

    def __str__(self) -> str:
        author_str = f" by {self.author}" if self.author else ""
        return f"[memory]{author_str}: {self.content[:50]}"
