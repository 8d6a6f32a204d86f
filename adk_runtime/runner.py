"""
Runner - 无状态执行引擎

Runner 职责（单一职责）:
- 绑定特定的 Agent 和 App
- 驱动一次用户回合：加载 Session、追加用户消息、执行 Agent
- 每个事件先通过 SessionService.append_event 持久化，再交给调用方

架构:
┌────────────────────────────────────────┐
│  Runner: 执行编排（绑定 Agent）          │
├────────────────────────────────────────┤
│  Agent: 编排器 / LlmAgent               │
├────────────────────────────────────────┤
│  Flow: Reason-Act 循环 + 工具执行       │
├────────────────────────────────────────┤
│  Model: LLM 抽象 + 请求/响应格式化       │
└────────────────────────────────────────┘

设计理念:
- Runner 本身无状态（Agent 是只读配置）
- Session 必须预先存在（由调用方创建）
- 事件追加是原子操作，同一会话上串行
- 调用方关闭事件流即取消本次调用
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from contextlib import aclosing
from typing import AsyncGenerator, Optional, Union

from .agents.base_agent import BaseAgent
from .agents.invocation_context import InvocationContext, RunConfig, StreamingMode
from .agents.llm_agent import LlmAgent
from .artifacts import BaseArtifactService, InMemoryArtifactService
from .config import Config, get_config
from .errors import SessionNotFoundError
from .events import Event
from .memory import BaseMemoryService, InMemoryMemoryService
from .models import Content
from .sessions import BaseSessionService, InMemorySessionService, Session

logger = logging.getLogger(__name__)


class Runner:
    """
    无状态 Runner

    使用方式:
        # 1. 创建 Agent
        agent = LlmAgent(name="assistant", model=llm, instruction="...")

        # 2. 创建 Runner（绑定 Agent）
        session_service = InMemorySessionService()
        runner = Runner(app_name="my_app", agent=agent, session_service=session_service)

        # 3. 创建 Session
        session = await session_service.create_session(app_name="my_app", user_id="u1")

        # 4. 执行
        async for event in runner.run_async(user_id="u1", session_id=session.id, new_message="你好"):
            print(event.text)
    """

    app_name: str
    """应用名称"""
    agent: BaseAgent
    """根 Agent（只读配置）"""
    session_service: BaseSessionService
    """Session 持久化服务"""
    memory_service: Optional[BaseMemoryService]
    artifact_service: Optional[BaseArtifactService]

    def __init__(
        self,
        app_name: str,
        agent: BaseAgent,
        session_service: BaseSessionService,
        memory_service: Optional[BaseMemoryService] = None,
        artifact_service: Optional[BaseArtifactService] = None,
        config: Optional[Config] = None,
    ):
        self.app_name = app_name
        self.agent = agent
        self.session_service = session_service
        self.memory_service = memory_service
        self.artifact_service = artifact_service
        self._config = config or get_config()

    # ==================== 异步 API ====================

    async def run_async(
        self,
        user_id: str,
        session_id: str,
        new_message: Union[Content, str, None],
        run_config: Optional[RunConfig] = None,
    ) -> AsyncGenerator[Event, None]:
        """
        执行一次用户回合

        前置条件: Session 必须已存在（通过 session_service.create_session 创建）

        Yields:
            Agent 树产生的每个事件（已持久化；partial 事件不持久化）

        Raises:
            SessionNotFoundError: Session 不存在
        """
        if isinstance(new_message, str):
            new_message = Content.from_text(new_message)
        run_config = run_config or self._default_run_config()
        invocation_id = InvocationContext.new_invocation_id()

        logger.info(
            f"[Runner] START app={self.app_name} invocation_id={invocation_id} "
            f"user={user_id} session={session_id} agent={self.agent.name}"
        )

        event_count = 0
        ctx: Optional[InvocationContext] = None
        try:
            # 1. 获取 Session（不创建）
            session = await self.session_service.get_session(
                app_name=self.app_name,
                user_id=user_id,
                session_id=session_id,
            )
            if session is None:
                raise SessionNotFoundError(self.app_name, user_id, session_id)

            ctx = self._new_invocation_context(session, invocation_id, new_message, run_config)

            # 2. 追加用户消息
            if new_message is not None:
                await self._append_new_message(ctx, new_message)

            # 3. 选择本轮执行的 Agent
            ctx.agent = self._find_agent_to_run(session, self.agent)
            logger.debug(f"[Runner] Agent to run: {ctx.agent.name}")

            # 4. 先持久化再交给调用方
            async with aclosing(ctx.agent.run_async(ctx)) as agen:
                async for event in agen:
                    await self.session_service.append_event(session=session, event=event)
                    event_count += 1
                    yield event

            logger.info(
                f"[Runner] SUCCESS invocation_id={invocation_id} "
                f"duration={ctx.elapsed_time:.2f}s events={event_count}"
            )

        except Exception as e:
            duration = f" duration={ctx.elapsed_time:.2f}s" if ctx else ""
            logger.error(
                f"[Runner] FAILED invocation_id={invocation_id} "
                f"error={e!r}{duration} events={event_count}",
                exc_info=True,
            )
            raise

    async def run_live(
        self,
        user_id: str,
        session_id: str,
        new_message: Union[Content, str, None],
        run_config: Optional[RunConfig] = None,
    ) -> AsyncGenerator[Event, None]:
        """流式执行（强制 SSE 模式）"""
        run_config = dataclasses.replace(
            run_config or self._default_run_config(),
            streaming_mode=StreamingMode.SSE,
        )
        async with aclosing(self.run_async(user_id, session_id, new_message, run_config)) as agen:
            async for event in agen:
                yield event

    # ==================== 同步 API ====================

    def run(
        self,
        user_id: str,
        session_id: str,
        new_message: Union[Content, str],
        run_config: Optional[RunConfig] = None,
    ) -> list[Event]:
        """
        同步执行，返回本轮产生的所有事件

        不能在已运行的事件循环中调用
        """
        async def _collect() -> list[Event]:
            return [
                event
                async for event in self.run_async(user_id, session_id, new_message, run_config)
            ]

        return asyncio.run(_collect())

    # ==================== 记忆 ====================

    async def add_session_to_memory(self, session: Session) -> list[str]:
        """把 Session 的对话写入长期记忆"""
        if self.memory_service is None:
            raise ValueError("Memory service is not available.")
        return await self.memory_service.add_session_to_memory(session)

    # ==================== 辅助方法 ====================

    def _default_run_config(self) -> RunConfig:
        runner_config = self._config.runner
        return RunConfig(
            streaming_mode=StreamingMode.SSE if runner_config.streaming else StreamingMode.NONE,
            max_llm_calls=runner_config.max_llm_calls,
        )

    def _new_invocation_context(
        self,
        session: Session,
        invocation_id: str,
        new_message: Optional[Content],
        run_config: RunConfig,
    ) -> InvocationContext:
        return InvocationContext(
            session_service=self.session_service,
            session=session,
            agent=self.agent,
            invocation_id=invocation_id,
            user_content=new_message,
            run_config=run_config,
            memory_service=self.memory_service,
            artifact_service=self.artifact_service,
        )

    async def _append_new_message(self, ctx: InvocationContext, new_message: Content) -> None:
        if not new_message.parts:
            raise ValueError("No parts in the new_message.")
        event = Event(
            invocation_id=ctx.invocation_id,
            author='user',
            content=new_message,
        )
        await self.session_service.append_event(session=ctx.session, event=event)

    def _find_agent_to_run(self, session: Session, root_agent: BaseAgent) -> BaseAgent:
        """
        选择本轮执行的 Agent

        从最近的事件往前找最后一个发言的 Agent；
        它能沿着树跳转回来时继续由它回答，否则回到根 Agent
        """
        for event in reversed(session.events):
            if event.author == 'user':
                continue
            if event.author == root_agent.name:
                return root_agent

            agent = root_agent.find_sub_agent(event.author)
            if agent is None:
                logger.warning(
                    f"[Runner] Event from unknown agent: {event.author}, event id: {event.id}"
                )
                continue
            if self._is_transferable_across_agent_tree(agent):
                return agent
        return root_agent

    def _is_transferable_across_agent_tree(self, agent_to_run: BaseAgent) -> bool:
        """从该 Agent 到根的路径上都是允许跳回父级的 LlmAgent"""
        agent: Optional[BaseAgent] = agent_to_run
        while agent is not None:
            if not isinstance(agent, LlmAgent):
                return False
            if agent.disallow_transfer_to_parent:
                return False
            agent = agent.parent_agent
        return True


class InMemoryRunner(Runner):
    """全部使用内存服务的 Runner，用于测试和本地实验"""

    def __init__(self, agent: BaseAgent, *, app_name: str = 'InMemoryRunner', config: Optional[Config] = None):
        super().__init__(
            app_name=app_name,
            agent=agent,
            session_service=InMemorySessionService(),
            memory_service=InMemoryMemoryService(),
            artifact_service=InMemoryArtifactService(),
            config=config,
        )
