"""memory 模块 - 可选的长期记忆服务"""

from .base_memory_service import BaseMemoryService, SearchResult
from .in_memory_memory_service import InMemoryMemoryService
from .memory_entry import MemoryEntry

__all__ = [
    'BaseMemoryService',
    'InMemoryMemoryService',
    'MemoryEntry',
    'SearchResult',
]
