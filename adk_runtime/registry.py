"""
AgentRegistry - 宿主层的 Agent 注册表

宿主程序（服务端、CLI）显式注册 Agent 来源，而不是扫描文件、按名字猜测导出。
Agent 来源是一个标签联合:
- InstanceSource: 已构造好的 Agent
- FactorySource: 无参工厂函数（可以是协程函数）
- BuilderSource: 配置好的 AgentBuilder

启动 Agent 时复用已有会话：选 last_update_time 最大的那个；没有任何会话时只创建一个。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .agents import AgentBuilder, BaseAgent
from .agents.callback_context import invoke_callback
from .artifacts import BaseArtifactService
from .config import Config, get_config
from .errors import AgentNotFoundError, SessionNotFoundError
from .memory import BaseMemoryService
from .models import Content
from .runner import Runner
from .sessions import BaseSessionService, Session

logger = logging.getLogger(__name__)


# ==================== Agent 来源 ====================

@dataclass(frozen=True)
class InstanceSource:
    """直接注册的 Agent 实例"""
    agent: BaseAgent


@dataclass(frozen=True)
class FactorySource:
    """() -> BaseAgent，可以是协程函数；只在首次启动时调用一次"""
    factory: Callable[[], Any]


@dataclass(frozen=True)
class BuilderSource:
    """使用构建器产生的 Agent（只取 Agent，会话由注册表管理）"""
    builder: AgentBuilder


AgentSource = Union[InstanceSource, FactorySource, BuilderSource]


@dataclass
class LoadedAgent:
    """已启动的 Agent 及其当前会话"""
    name: str
    agent: BaseAgent
    runner: Runner
    app_name: str
    user_id: str
    session_id: str


# ==================== 注册表 ====================

class AgentRegistry:
    """
    Agent 注册表

    使用方式:
        registry = AgentRegistry(session_service=SqliteSessionService("sessions.db"))
        registry.register("weather", InstanceSource(weather_agent))
        registry.register("research", FactorySource(create_research_agent))

        reply = await registry.send_message("weather", "北京天气如何？")
    """

    def __init__(
        self,
        session_service: Optional[BaseSessionService] = None,
        *,
        app_name: str = 'adk-server',
        memory_service: Optional[BaseMemoryService] = None,
        artifact_service: Optional[BaseArtifactService] = None,
        config: Optional[Config] = None,
    ):
        self._config = config or get_config()
        self.session_service = session_service or self._config.create_session_service()
        self.app_name = app_name
        self.memory_service = memory_service
        self.artifact_service = artifact_service
        self._sources: dict[str, AgentSource] = {}
        self._loaded: dict[str, LoadedAgent] = {}

    # ==================== 注册 ====================

    def register(self, name: str, source: AgentSource) -> None:
        """注册 Agent 来源；同名且已启动的 Agent 会先被停止"""
        if not isinstance(source, (InstanceSource, FactorySource, BuilderSource)):
            raise TypeError(f"Unsupported agent source: {type(source).__name__}")
        if name in self._sources:
            logger.warning(f"[AgentRegistry] Replacing agent source: {name}")
            self.stop(name)
        self._sources[name] = source

    def unregister(self, name: str) -> None:
        self.stop(name)
        self._sources.pop(name, None)

    def list_agents(self) -> list[str]:
        return list(self._sources)

    def is_running(self, name: str) -> bool:
        return name in self._loaded

    def get_loaded(self, name: str) -> LoadedAgent:
        if name not in self._loaded:
            raise AgentNotFoundError(name)
        return self._loaded[name]

    # ==================== 生命周期 ====================

    async def start(self, name: str) -> LoadedAgent:
        """
        启动 Agent（已启动时直接返回）

        会话选择：该用户已有会话时复用 last_update_time 最大的一个，
        否则创建一个新会话
        """
        if name in self._loaded:
            return self._loaded[name]

        agent = await self._materialize(name)
        user_id = f"user_{name}"

        listed = await self.session_service.list_sessions(app_name=self.app_name, user_id=user_id)
        if listed.sessions:
            session = max(listed.sessions, key=lambda s: s.last_update_time)
            logger.info(f"[AgentRegistry] Reusing session {session.id} for {name}")
        else:
            session = await self.session_service.create_session(app_name=self.app_name, user_id=user_id)
            logger.info(f"[AgentRegistry] Created session {session.id} for {name}")

        loaded = LoadedAgent(
            name=name,
            agent=agent,
            runner=Runner(
                app_name=self.app_name,
                agent=agent,
                session_service=self.session_service,
                memory_service=self.memory_service,
                artifact_service=self.artifact_service,
                config=self._config,
            ),
            app_name=self.app_name,
            user_id=user_id,
            session_id=session.id,
        )
        self._loaded[name] = loaded
        return loaded

    def stop(self, name: str) -> None:
        self._loaded.pop(name, None)

    def stop_all(self) -> None:
        self._loaded.clear()

    async def _materialize(self, name: str) -> BaseAgent:
        source = self._sources.get(name)
        if source is None:
            raise AgentNotFoundError(name)

        if isinstance(source, InstanceSource):
            agent = source.agent
        elif isinstance(source, FactorySource):
            agent = await invoke_callback(source.factory)
        else:
            agent = source.builder.build_agent()

        if not isinstance(agent, BaseAgent):
            raise TypeError(
                f"Agent source '{name}' produced {type(agent).__name__}, expected BaseAgent"
            )
        return agent

    # ==================== 会话 ====================

    async def send_message(self, name: str, message: Union[str, Content]) -> str:
        """向 Agent 的当前会话发送消息（未启动时自动启动），返回拼接的文本"""
        loaded = await self.start(name)
        texts: list[str] = []
        async for event in loaded.runner.run_async(
            user_id=loaded.user_id,
            session_id=loaded.session_id,
            new_message=message,
        ):
            if not event.partial and event.author != 'user' and event.text:
                texts.append(event.text)
        return ''.join(texts).strip()

    async def list_sessions(self, name: str) -> list[Session]:
        loaded = await self.start(name)
        response = await self.session_service.list_sessions(
            app_name=loaded.app_name,
            user_id=loaded.user_id,
        )
        return response.sessions

    async def create_session(self, name: str, state: Optional[dict[str, Any]] = None) -> Session:
        """为 Agent 新建会话并切换过去"""
        loaded = await self.start(name)
        session = await self.session_service.create_session(
            app_name=loaded.app_name,
            user_id=loaded.user_id,
            state=state,
        )
        loaded.session_id = session.id
        return session

    async def switch_session(self, name: str, session_id: str) -> None:
        loaded = await self.start(name)
        session = await self.session_service.get_session(
            app_name=loaded.app_name,
            user_id=loaded.user_id,
            session_id=session_id,
        )
        if session is None:
            raise SessionNotFoundError(loaded.app_name, loaded.user_id, session_id)
        loaded.session_id = session_id
