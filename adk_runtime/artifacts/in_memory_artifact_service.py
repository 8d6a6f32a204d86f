"""InMemoryArtifactService - 内存存储的 artifact 服务"""

from __future__ import annotations

import logging
from typing import Optional

from typing_extensions import override

from ..models import Part
from .base_artifact_service import BaseArtifactService

logger = logging.getLogger(__name__)


class InMemoryArtifactService(BaseArtifactService):
    """
    内存存储的 artifact 服务，仅用于开发和测试

    _artifacts: {path: [Part, ...]}，列表下标即版本号
    """

    def __init__(self):
        self._artifacts: dict[str, list[Part]] = {}

    def _file_has_user_namespace(self, filename: str) -> bool:
        return filename.startswith("user:")

    def _artifact_path(self, app_name: str, user_id: str, session_id: str, filename: str) -> str:
        if self._file_has_user_namespace(filename):
            return f"{app_name}/{user_id}/user/{filename}"
        return f"{app_name}/{user_id}/{session_id}/{filename}"

    @override
    async def save_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        artifact: Part,
    ) -> int:
        path = self._artifact_path(app_name, user_id, session_id, filename)
        versions = self._artifacts.setdefault(path, [])
        versions.append(artifact)
        logger.debug(f"[InMemoryArtifactService] Saved {path} version={len(versions) - 1}")
        return len(versions) - 1

    @override
    async def load_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        version: Optional[int] = None,
    ) -> Optional[Part]:
        versions = self._artifacts.get(self._artifact_path(app_name, user_id, session_id, filename))
        if not versions:
            return None
        if version is None:
            return versions[-1]
        if 0 <= version < len(versions):
            return versions[version]
        return None

    @override
    async def list_artifact_keys(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
    ) -> list[str]:
        session_prefix = f"{app_name}/{user_id}/{session_id}/"
        user_prefix = f"{app_name}/{user_id}/user/"
        keys = set()
        for path in self._artifacts:
            if path.startswith(session_prefix):
                keys.add(path[len(session_prefix):])
            elif path.startswith(user_prefix):
                keys.add(path[len(user_prefix):])
        return sorted(keys)

    @override
    async def delete_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
    ) -> None:
        self._artifacts.pop(self._artifact_path(app_name, user_id, session_id, filename), None)

    @override
    async def list_versions(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
    ) -> list[int]:
        versions = self._artifacts.get(self._artifact_path(app_name, user_id, session_id, filename), [])
        return list(range(len(versions)))
