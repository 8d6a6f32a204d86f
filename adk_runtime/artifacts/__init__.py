"""artifacts 模块 - 可选的版本化文件存储"""

from .base_artifact_service import BaseArtifactService
from .in_memory_artifact_service import InMemoryArtifactService

__all__ = [
    'BaseArtifactService',
    'InMemoryArtifactService',
]
