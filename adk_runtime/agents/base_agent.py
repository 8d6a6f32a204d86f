"""BaseAgent - Agent 基类，定义配置和生命周期框架"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any, AsyncGenerator, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import InvalidAgentConfigurationError
from ..events import Event
from ..models.content import Content
from .callback_context import CallbackContext, invoke_callback
from .invocation_context import StreamingMode

if TYPE_CHECKING:
    from .invocation_context import InvocationContext

logger = logging.getLogger(__name__)

# 回调类型定义（使用简化类型避免 Pydantic 前向引用问题）
BeforeAgentCallback = Callable[..., Any]  # (callback_context) -> Optional[Content]
AfterAgentCallback = Callable[..., Any]   # (callback_context) -> Optional[Content]


class BaseAgent(BaseModel):
    """
    Agent 基类 - 纯配置容器 + 树形结构 + 生命周期框架

    设计理念：
    - Agent 是配置，不包含状态；运行时状态都在 InvocationContext 和 Session 中
    - run_async 是模板方法，子类实现 _run_async_impl
    - 支持 before/after 回调钩子
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra='forbid')

    # === 基本配置 ===
    name: str
    """Agent 名称，必须是有效的 Python 标识符，在同一棵树中唯一"""

    description: str = ''
    """Agent 描述，用于 LLM 决定是否委托给此 Agent"""

    # === 树形结构 ===
    sub_agents: list['BaseAgent'] = Field(default_factory=list)
    """子 Agent 列表"""

    parent_agent: Optional['BaseAgent'] = Field(default=None, exclude=True, repr=False)
    """父 Agent（自动设置，不序列化）"""

    # === 生命周期回调 ===
    before_agent_callback: Optional[BeforeAgentCallback] = None
    """Agent 执行前的回调，返回 Content 则跳过执行"""

    after_agent_callback: Optional[AfterAgentCallback] = None
    """Agent 执行后的回调，返回 Content 则追加一条事件"""

    # === 验证器 ===

    @field_validator('name', mode='after')
    @classmethod
    def validate_name(cls, value: str) -> str:
        """验证 Agent 名称"""
        if not value.isidentifier():
            raise ValueError(
                f"Invalid agent name: '{value}'. "
                "Must be a valid Python identifier."
            )
        if value == 'user':
            raise ValueError("Agent name cannot be 'user' (reserved).")
        return value

    def model_post_init(self, __context: Any) -> None:
        """初始化后设置父子关系"""
        self._set_parent_for_sub_agents()
        self._check_unique_names()

    def _set_parent_for_sub_agents(self) -> None:
        """为所有子 Agent 设置 parent_agent"""
        for sub_agent in self.sub_agents:
            if sub_agent.parent_agent is not None:
                raise InvalidAgentConfigurationError(
                    f"Agent '{sub_agent.name}' already has parent "
                    f"'{sub_agent.parent_agent.name}', cannot add to '{self.name}'"
                )
            sub_agent.parent_agent = self

    def _check_unique_names(self) -> None:
        seen: set[str] = set()
        for agent in self.walk():
            if agent.name in seen:
                raise InvalidAgentConfigurationError(
                    f"Duplicate agent name '{agent.name}' under '{self.name}'"
                )
            seen.add(agent.name)

    # === 树形结构操作 ===

    @property
    def root_agent(self) -> 'BaseAgent':
        """获取根 Agent"""
        root = self
        while root.parent_agent is not None:
            root = root.parent_agent
        return root

    def walk(self):
        """深度优先遍历自身及所有后代"""
        yield self
        for sub_agent in self.sub_agents:
            yield from sub_agent.walk()

    def find_agent(self, name: str) -> Optional['BaseAgent']:
        """在当前 Agent 及其后代中查找"""
        if self.name == name:
            return self
        return self.find_sub_agent(name)

    def find_sub_agent(self, name: str) -> Optional['BaseAgent']:
        """在后代中查找"""
        for sub_agent in self.sub_agents:
            if result := sub_agent.find_agent(name):
                return result
        return None

    # === 执行入口（模板方法） ===

    async def run_async(
        self,
        parent_context: 'InvocationContext',
    ) -> AsyncGenerator[Event, None]:
        """
        执行入口 - 模板方法

        处理生命周期回调，具体执行逻辑委托给 _run_async_impl
        """
        ctx = self._create_invocation_context(parent_context)
        logger.debug(f"[{self.name}] Starting execution branch={ctx.branch}")

        if event := await self._handle_before_agent_callback(ctx):
            yield event
        if ctx.end_invocation:
            return

        async for event in self._run_async_impl(ctx):
            yield event

        if ctx.end_invocation:
            return

        if event := await self._handle_after_agent_callback(ctx):
            yield event

        logger.debug(f"[{self.name}] Execution completed")

    async def run_live(
        self,
        parent_context: 'InvocationContext',
    ) -> AsyncGenerator[Event, None]:
        """实时模式入口（模型以流式方式返回）"""
        ctx = self._create_invocation_context(parent_context)
        if event := await self._handle_before_agent_callback(ctx):
            yield event
        if ctx.end_invocation:
            return

        async for event in self._run_live_impl(ctx):
            yield event

        if ctx.end_invocation:
            return

        if event := await self._handle_after_agent_callback(ctx):
            yield event

    async def _run_async_impl(
        self,
        ctx: 'InvocationContext',
    ) -> AsyncGenerator[Event, None]:
        """
        核心执行逻辑 - 子类必须实现
        """
        raise NotImplementedError(
            f"_run_async_impl not implemented for {type(self).__name__}"
        )
        yield  # 保持为 AsyncGenerator

    async def _run_live_impl(
        self,
        ctx: 'InvocationContext',
    ) -> AsyncGenerator[Event, None]:
        """
        实时模式的默认实现：以 SSE 模式执行 _run_async_impl

        流式配置随上下文传给子 Agent，组合 Agent 无需单独实现
        """
        live_ctx = ctx.model_copy(
            run_config=dataclasses.replace(ctx.run_config, streaming_mode=StreamingMode.SSE),
        )
        async for event in self._run_async_impl(live_ctx):
            yield event
        if live_ctx.end_invocation:
            ctx.end_invocation = True

    # === 辅助方法 ===

    def _create_invocation_context(self, parent_context: 'InvocationContext') -> 'InvocationContext':
        return parent_context.model_copy(agent=self)

    async def _handle_before_agent_callback(self, ctx: 'InvocationContext') -> Optional[Event]:
        """
        执行 before 回调

        回调返回 Content 时以它作为本 Agent 的回复，并跳过执行；
        只修改了 state 时产生一条只携带 actions 的事件
        """
        if not self.before_agent_callback:
            return None

        callback_context = CallbackContext(ctx)
        content = await invoke_callback(self.before_agent_callback, callback_context)
        if content:
            ctx.end_invocation = True
            logger.info(f"[{self.name}] Skipped by before_agent_callback")
            return self._callback_event(ctx, callback_context, content)
        if callback_context.state.has_delta():
            return self._callback_event(ctx, callback_context, None)
        return None

    async def _handle_after_agent_callback(self, ctx: 'InvocationContext') -> Optional[Event]:
        if not self.after_agent_callback:
            return None

        callback_context = CallbackContext(ctx)
        content = await invoke_callback(self.after_agent_callback, callback_context)
        if content or callback_context.state.has_delta():
            return self._callback_event(ctx, callback_context, content or None)
        return None

    def _callback_event(self, ctx: 'InvocationContext', callback_context: CallbackContext, content: Any) -> Event:
        if isinstance(content, str):
            content = Content.from_text(content, role='model')
        return Event(
            invocation_id=ctx.invocation_id,
            author=self.name,
            branch=ctx.branch,
            content=content,
            actions=callback_context.actions,
        )

    # === 序列化 ===

    def to_dict(self) -> dict[str, Any]:
        """转换为字典"""
        return {
            'name': self.name,
            'description': self.description,
            'sub_agents': [a.name for a in self.sub_agents],
        }
