"""
BaseMemoryService - 记忆服务抽象基类

长期记忆与回合循环正交：Runner 不依赖它也能工作。
按 (app_name, user_id) 隔离，检索跨会话。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .memory_entry import MemoryEntry

if TYPE_CHECKING:
    from ..sessions import Session


@dataclass
class SearchResult:
    """搜索结果"""
    entries: list[MemoryEntry] = field(default_factory=list)
    total_count: int = 0

    def __iter__(self):
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)

    def to_context_string(self, max_entries: int = 5) -> str:
        """
        转换为可插入 prompt 的上下文字符串
        """
        if not self.entries:
            return ""

        lines = ["[Relevant Memories]"]
        for entry in self.entries[:max_entries]:
            author = f" ({entry.author})" if entry.author else ""
            time_str = entry.timestamp.strftime("%Y-%m-%d %H:%M")
            lines.append(f"- [{time_str}]{author}: {entry.content}")

        if len(self.entries) > max_entries:
            lines.append(f"... and {len(self.entries) - max_entries} more")

        return "\n".join(lines)


class BaseMemoryService(ABC):
    """
    记忆服务抽象基类

    核心方法：
    - add_session_to_memory: 将整个 Session 的文本事件写入记忆
    - search_memory: 按查询检索记忆
    """

    @abstractmethod
    async def add_session_to_memory(self, session: 'Session') -> list[str]:
        """
        将 Session 加入记忆

        Returns:
            新增的记忆 ID 列表
        """

    @abstractmethod
    async def search_memory(
        self,
        *,
        app_name: str,
        user_id: str,
        query: str,
        limit: int = 10,
    ) -> SearchResult:
        """
        搜索记忆

        Args:
            app_name: 应用名称
            user_id: 用户 ID
            query: 搜索查询（关键词或语义）
            limit: 返回数量限制
        """
