"""
AgentBuilder - 链式配置 Agent、Session 与 Runner

使用方式:
    # 最简单：自动创建内存 Session，直接提问
    answer = await AgentBuilder.create("assistant").with_model(llm).ask("你好")

    # 组合 Agent
    built = await (
        AgentBuilder.create("pipeline")
        .as_sequential([analyzer, generator])
        .with_quick_session(app_name="demo", user_id="u1")
        .build()
    )
    async for event in built.runner.run_async(
        user_id=built.session.user_id,
        session_id=built.session.id,
        new_message="分析一下",
    ):
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Optional, Union

from .base_agent import BaseAgent
from .langgraph_agent import LangGraphAgent, LangGraphNode
from .llm_agent import LlmAgent, ToolUnion
from .loop_agent import LoopAgent
from .parallel_agent import ParallelAgent
from .sequential_agent import SequentialAgent
from ..errors import InvalidAgentConfigurationError
from ..models import BaseLlm, Content
from ..runner import Runner
from ..sessions import BaseSessionService, InMemorySessionService, Session

if TYPE_CHECKING:
    from ..artifacts import BaseArtifactService
    from ..memory import BaseMemoryService

logger = logging.getLogger(__name__)

AgentType = Literal['llm', 'sequential', 'parallel', 'loop', 'langgraph']


@dataclass
class AgentBuilderConfig:
    """链式调用累积的配置"""
    name: str
    model: Union[str, BaseLlm, None] = None
    description: str = ''
    instruction: str = ''
    tools: list[ToolUnion] = field(default_factory=list)
    output_key: Optional[str] = None
    agent_type: AgentType = 'llm'
    sub_agents: list[BaseAgent] = field(default_factory=list)
    max_iterations: Optional[int] = None
    nodes: list[LangGraphNode] = field(default_factory=list)
    root_node: Optional[str] = None


@dataclass
class SessionSetup:
    """Session 相关配置"""
    service: BaseSessionService
    user_id: str
    app_name: str
    session_id: Optional[str] = None
    state: Optional[dict[str, Any]] = None


@dataclass
class BuiltAgent:
    """build() 的结果"""
    agent: BaseAgent
    runner: 'EnhancedRunner'
    session: Session


class EnhancedRunner(Runner):
    """
    绑定了 user_id / session_id 的 Runner

    ask() 发送一条消息并返回拼接后的文本，丢弃工具调用结构，只适合简单场景。
    """

    def __init__(
        self,
        *,
        user_id: str,
        session_id: str,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.user_id = user_id
        self.session_id = session_id

    async def ask(self, message: Union[str, Content]) -> str:
        """发送消息，返回 Agent 产生的所有非 partial 文本"""
        texts: list[str] = []
        async for event in self.run_async(
            user_id=self.user_id,
            session_id=self.session_id,
            new_message=message,
        ):
            if event.partial or event.author == 'user':
                continue
            if text := event.text:
                texts.append(text)
        return ''.join(texts)


class AgentBuilder:
    """
    Agent 构建器

    created -> 链式配置 -> build()。build() 产生的 Agent 缓存在构建器上，
    重复 build() 复用同一个 Agent，但每次都会新建 Session。
    """

    def __init__(self, name: str = 'default_agent'):
        self.config = AgentBuilderConfig(name=name)
        self._session_config: Optional[SessionSetup] = None
        self._memory_service: Optional['BaseMemoryService'] = None
        self._artifact_service: Optional['BaseArtifactService'] = None
        self._existing_agent: Optional[BaseAgent] = None
        self._agent: Optional[BaseAgent] = None

    @classmethod
    def create(cls, name: str = 'default_agent') -> 'AgentBuilder':
        return cls(name)

    # ==================== LLM Agent 配置 ====================

    def with_model(self, model: Union[str, BaseLlm]) -> 'AgentBuilder':
        self.config.model = model
        return self

    def with_description(self, description: str) -> 'AgentBuilder':
        self.config.description = description
        return self

    def with_instruction(self, instruction: str) -> 'AgentBuilder':
        self.config.instruction = instruction
        return self

    def with_tools(self, *tools: ToolUnion) -> 'AgentBuilder':
        """追加工具（BaseTool 或普通函数）"""
        self.config.tools.extend(tools)
        return self

    def with_output_key(self, output_key: str) -> 'AgentBuilder':
        self.config.output_key = output_key
        return self

    def with_agent(self, agent: BaseAgent) -> 'AgentBuilder':
        """直接使用已构造好的 Agent，忽略其他 Agent 配置"""
        self._existing_agent = agent
        return self

    # ==================== 组合 Agent ====================

    def as_sequential(self, sub_agents: list[BaseAgent]) -> 'AgentBuilder':
        self._set_composite('sequential', sub_agents)
        return self

    def as_parallel(self, sub_agents: list[BaseAgent]) -> 'AgentBuilder':
        self._set_composite('parallel', sub_agents)
        return self

    def as_loop(self, sub_agents: list[BaseAgent], max_iterations: int = 3) -> 'AgentBuilder':
        self._set_composite('loop', sub_agents)
        self.config.max_iterations = max_iterations
        return self

    def as_lang_graph(self, nodes: list[LangGraphNode], root_node: str) -> 'AgentBuilder':
        if not nodes or not root_node:
            raise InvalidAgentConfigurationError("LangGraph agent requires nodes and a root_node")
        self.config.agent_type = 'langgraph'
        self.config.nodes = list(nodes)
        self.config.root_node = root_node
        return self

    def _set_composite(self, agent_type: AgentType, sub_agents: list[BaseAgent]) -> None:
        if not sub_agents:
            raise InvalidAgentConfigurationError(f"{agent_type} agent requires at least one sub agent")
        self.config.agent_type = agent_type
        self.config.sub_agents = list(sub_agents)

    # ==================== 服务配置 ====================

    def with_session(
        self,
        service: BaseSessionService,
        user_id: str,
        app_name: str,
        session_id: Optional[str] = None,
        state: Optional[dict[str, Any]] = None,
    ) -> 'AgentBuilder':
        self._session_config = SessionSetup(
            service=service,
            user_id=user_id,
            app_name=app_name,
            session_id=session_id,
            state=state,
        )
        return self

    def with_quick_session(
        self,
        app_name: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> 'AgentBuilder':
        """使用内存 SessionService"""
        return self.with_session(
            InMemorySessionService(),
            user_id=user_id or f"user-{self.config.name}",
            app_name=app_name or f"session-{self.config.name}",
        )

    def with_memory(self, memory_service: 'BaseMemoryService') -> 'AgentBuilder':
        self._memory_service = memory_service
        return self

    def with_artifact_service(self, artifact_service: 'BaseArtifactService') -> 'AgentBuilder':
        self._artifact_service = artifact_service
        return self

    # ==================== 构建 ====================

    def build_agent(self) -> BaseAgent:
        """只构建 Agent，不创建 Session"""
        if self._agent is None:
            self._agent = self._existing_agent or self._create_agent()
        return self._agent

    async def build(self) -> BuiltAgent:
        """构建 Agent、Session 和 EnhancedRunner"""
        agent = self.build_agent()
        if self._session_config is None:
            self.with_quick_session()
        session_config = self._session_config

        session = await session_config.service.create_session(
            app_name=session_config.app_name,
            user_id=session_config.user_id,
            state=session_config.state,
            session_id=session_config.session_id,
        )
        runner = EnhancedRunner(
            app_name=session_config.app_name,
            agent=agent,
            session_service=session_config.service,
            memory_service=self._memory_service,
            artifact_service=self._artifact_service,
            user_id=session_config.user_id,
            session_id=session.id,
        )
        logger.info(
            f"[AgentBuilder] Built agent={agent.name} type={type(agent).__name__} "
            f"session={session.id}"
        )
        return BuiltAgent(agent=agent, runner=runner, session=session)

    async def ask(self, message: Union[str, Content]) -> str:
        """构建并发送一条消息，返回拼接的文本"""
        built = await self.build()
        return await built.runner.ask(message)

    def _create_agent(self) -> BaseAgent:
        config = self.config
        common = dict(name=config.name, description=config.description)

        if config.agent_type == 'sequential':
            return SequentialAgent(sub_agents=config.sub_agents, **common)
        if config.agent_type == 'parallel':
            return ParallelAgent(sub_agents=config.sub_agents, **common)
        if config.agent_type == 'loop':
            return LoopAgent(
                sub_agents=config.sub_agents,
                max_iterations=config.max_iterations,
                **common,
            )
        if config.agent_type == 'langgraph':
            if not config.nodes or not config.root_node:
                raise InvalidAgentConfigurationError("LangGraph agent requires nodes and a root_node")
            return LangGraphAgent(nodes=config.nodes, root_node=config.root_node, **common)

        if not config.model:
            raise InvalidAgentConfigurationError(
                f"Model is required for LLM agent '{config.name}', call with_model() first"
            )
        return LlmAgent(
            model=config.model,
            instruction=config.instruction,
            tools=config.tools,
            output_key=config.output_key,
            **common,
        )
