"""BaseArtifactService - 版本化的 artifact 存储接口"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..models import Part


class BaseArtifactService(ABC):
    """
    Artifact 服务抽象基类

    以 (app_name, user_id, session_id, filename) 为键，每次保存生成递增版本号（从 0 开始）。
    文件名以 "user:" 开头时归属用户，跨会话可见。
    """

    @abstractmethod
    async def save_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        artifact: Part,
    ) -> int:
        """保存 artifact，返回新版本号"""

    @abstractmethod
    async def load_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        version: Optional[int] = None,
    ) -> Optional[Part]:
        """加载 artifact，version 为空时取最新版本；不存在返回 None"""

    @abstractmethod
    async def list_artifact_keys(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
    ) -> list[str]:
        """列出会话可见的所有文件名（含 user: 文件），按名称排序"""

    @abstractmethod
    async def delete_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
    ) -> None:
        """删除 artifact 的所有版本"""

    @abstractmethod
    async def list_versions(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
    ) -> list[int]:
        """列出 artifact 的所有版本号"""
