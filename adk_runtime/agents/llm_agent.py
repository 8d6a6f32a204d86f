"""LlmAgent - LLM 驱动的 Agent"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, AsyncGenerator, Callable, Literal, Optional, Union

from pydantic import Field, PrivateAttr
from typing_extensions import override

from .base_agent import BaseAgent
from .callback_context import invoke_callback
from ..errors import InvalidAgentConfigurationError
from ..events import Event
from ..flows import SimpleFlow
from ..models import BaseLlm
from ..tools import BaseTool, as_tool

if TYPE_CHECKING:
    from ..flows import BaseFlow
    from .callback_context import CallbackContext
    from .invocation_context import InvocationContext

logger = logging.getLogger(__name__)

# (callback_context) -> str，返回的指令不做 state 模板替换
InstructionProvider = Callable[..., Any]
# (callback_context, llm_request) -> Optional[LlmResponse]
BeforeModelCallback = Callable[..., Any]
# (callback_context, llm_response) -> Optional[LlmResponse]
AfterModelCallback = Callable[..., Any]
# (tool, args, tool_context) -> Optional[dict]
BeforeToolCallback = Callable[..., Any]
# (tool, args, tool_context, tool_response) -> Optional[dict]
AfterToolCallback = Callable[..., Any]

ToolUnion = Union[BaseTool, Callable[..., Any]]


class LlmAgent(BaseAgent):
    """
    LLM 驱动的 Agent

    职责：
    - 管理 LLM 相关配置（model, instruction, tools 等）
    - 委托给 Flow 执行实际的 LLM 交互
    - output_key: 把最终文本写入 state，供后续 Agent 的 {key} 模板使用
    """

    # === LLM 配置 ===
    model: Union[str, BaseLlm] = ''
    """模型名称或 LLM 实例；为空时从祖先 LlmAgent 继承"""

    instruction: Union[str, InstructionProvider] = ''
    """Agent 的指令，支持 {key} / {key?} / {artifact.name} 模板"""

    global_instruction: Union[str, InstructionProvider] = ''
    """只在根 Agent 上生效，对整棵树的所有 LlmAgent 可见"""

    temperature: float = 0.7
    max_tokens: Optional[int] = None
    max_iterations: int = 10
    """单次运行中最多调用模型的次数"""

    # === 工具 ===
    tools: list[ToolUnion] = Field(default_factory=list)
    """可用工具列表，普通函数会被包装为 FunctionTool"""

    # === 输出与历史 ===
    output_key: Optional[str] = None
    """最终文本写入的 state 键"""

    include_contents: Literal['default', 'none'] = 'default'
    """'none' 时模型只看到当前调用产生的内容"""

    # === Agent 跳转控制 ===
    disallow_transfer_to_parent: bool = False
    """禁止跳转回父 Agent"""

    disallow_transfer_to_peers: bool = False
    """禁止跳转到同级 Agent"""

    # === 回调 ===
    before_model_callback: Optional[BeforeModelCallback] = None
    after_model_callback: Optional[AfterModelCallback] = None
    before_tool_callback: Optional[BeforeToolCallback] = None
    after_tool_callback: Optional[AfterToolCallback] = None

    # === 私有字段 ===
    _flow: Optional['BaseFlow'] = PrivateAttr(default=None)
    _canonical_tools: list[BaseTool] = PrivateAttr(default_factory=list)
    _resolved_llm: Optional[BaseLlm] = PrivateAttr(default=None)

    @override
    def model_post_init(self, __context: Any) -> None:
        super().model_post_init(__context)
        self._flow = SimpleFlow()
        self._canonical_tools = [as_tool(t) for t in self.tools]
        names = [t.name for t in self._canonical_tools]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise InvalidAgentConfigurationError(
                f"Agent '{self.name}' has duplicate tool names: {sorted(duplicates)}"
            )
        logger.debug(f"[LlmAgent {self.name}] Created with model={self.get_model_name()}")

    # === 属性 ===

    @property
    def flow(self) -> 'BaseFlow':
        """返回 Flow 实例"""
        if self._flow is None:
            self._flow = SimpleFlow()
        return self._flow

    @property
    def canonical_tools(self) -> list[BaseTool]:
        """统一为 BaseTool 的工具列表"""
        return self._canonical_tools

    @property
    def canonical_model(self) -> BaseLlm:
        """
        获取解析后的 LLM 实例

        顺序：自身的 BaseLlm 实例 > 自身的模型名（通过全局配置创建）> 祖先 LlmAgent 的模型
        """
        if isinstance(self.model, BaseLlm):
            return self.model
        if self.model:
            if self._resolved_llm is None:
                from ..config import get_config
                self._resolved_llm = get_config().create_llm(self.model)
            return self._resolved_llm

        ancestor = self.parent_agent
        while ancestor is not None:
            if isinstance(ancestor, LlmAgent):
                return ancestor.canonical_model
            ancestor = ancestor.parent_agent
        raise InvalidAgentConfigurationError(f"No model found for agent '{self.name}'")

    def get_model_name(self) -> str:
        """获取模型名称"""
        if isinstance(self.model, str):
            return self.model
        return self.model.model or type(self.model).__name__

    # === 指令 ===

    async def canonical_instruction(self, ctx: 'CallbackContext') -> tuple[str, bool]:
        """
        返回 (指令, 是否跳过 state 模板替换)

        字符串指令需要替换；provider 返回的指令原样使用
        """
        if isinstance(self.instruction, str):
            return self.instruction, False
        return await invoke_callback(self.instruction, ctx), True

    async def canonical_global_instruction(self, ctx: 'CallbackContext') -> tuple[str, bool]:
        if isinstance(self.global_instruction, str):
            return self.global_instruction, False
        return await invoke_callback(self.global_instruction, ctx), True

    # === 可跳转的 Agent ===

    def get_transferable_agents(self) -> list[BaseAgent]:
        """
        获取可跳转到的 Agent 列表

        注意：只有当父 Agent 是 LlmAgent 时，才允许跳转到父 Agent 或同级 Agent。
        如果父 Agent 是编排器（SequentialAgent、LoopAgent 等），执行顺序由编排器控制，
        不允许子 Agent 自行跳转。
        """
        agents: list[BaseAgent] = list(self.sub_agents)

        parent = self.parent_agent
        if not isinstance(parent, LlmAgent):
            return agents

        if not self.disallow_transfer_to_parent:
            agents.append(parent)

        if not self.disallow_transfer_to_peers:
            agents.extend(
                sibling for sibling in parent.sub_agents
                if sibling.name != self.name
            )

        return agents

    # === 执行 ===

    @override
    async def _run_async_impl(
        self,
        ctx: 'InvocationContext',
    ) -> AsyncGenerator[Event, None]:
        """LLM Agent 的核心执行逻辑"""
        async for event in self.flow.run_async(ctx):
            self._maybe_save_output_to_state(event)
            yield event

    def _maybe_save_output_to_state(self, event: Event) -> None:
        """本 Agent 的最终文本写入 output_key（跳转后其他 Agent 的事件不处理）"""
        if not self.output_key or event.author != self.name:
            return
        if event.partial or not event.is_final_response():
            return
        text = event.text
        if text:
            event.actions.state_delta[self.output_key] = text

    # === 序列化 ===

    @override
    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update({
            'instruction': self.instruction if isinstance(self.instruction, str) else '<provider>',
            'model': self.get_model_name(),
            'tools': [t.to_function_declaration() for t in self.canonical_tools],
            'output_key': self.output_key,
            'temperature': self.temperature,
            'max_tokens': self.max_tokens,
            'max_iterations': self.max_iterations,
        })
        return base


# 简短别名
Agent = LlmAgent
