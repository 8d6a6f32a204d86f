from __future__ import annotations

import pytest

from adk_runtime import Config, InMemoryArtifactService, InMemoryMemoryService, InMemorySessionService, set_config
from adk_runtime.sessions import SqliteSessionService


@pytest.fixture(autouse=True)
def isolated_config():
    """测试不读取工作目录下的配置文件和环境变量"""
    config = Config()
    set_config(config)
    yield config
    set_config(Config())


@pytest.fixture
def session_service():
    return InMemorySessionService()


@pytest.fixture
def sqlite_session_service(tmp_path):
    return SqliteSessionService(db_path=tmp_path / 'sessions.db')


@pytest.fixture(params=['memory', 'sqlite'])
def any_session_service(request, tmp_path):
    if request.param == 'memory':
        return InMemorySessionService()
    return SqliteSessionService(db_path=tmp_path / 'sessions.db')


@pytest.fixture
def memory_service():
    return InMemoryMemoryService()


@pytest.fixture
def artifact_service():
    return InMemoryArtifactService()
