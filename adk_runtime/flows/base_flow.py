"""Flow 抽象基类"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, AsyncGenerator

from ..agents.callback_context import CallbackContext, invoke_callback
from ..errors import AgentNotFoundError
from ..events import Event, EventActions
from ..models import LlmRequest, LlmResponse
from ..tools.tool_context import ToolContext
from . import functions

if TYPE_CHECKING:
    from ..agents.base_agent import BaseAgent
    from ..agents.invocation_context import InvocationContext

logger = logging.getLogger(__name__)


# ==================== Processor 协议 ====================

class RequestProcessor:
    """
    请求处理器协议

    在 LLM 请求发送前处理请求，可用于：
    - 添加 system 指令
    - 注入上下文信息
    - 声明工具
    """

    async def process_async(self, ctx: 'InvocationContext', request: LlmRequest) -> None:
        """处理请求（原地修改）"""


class BaseFlow(ABC):
    """
    Flow 抽象基类

    Flow 负责编排 LLM 调用循环（Reason-Act Loop）：
    1. 构建 LLM 请求（处理器链 + 工具声明）
    2. 调用 LLM
    3. 处理响应（执行工具调用、Agent 跳转或返回最终结果）
    4. 如果有工具调用，重复步骤 1-3

    设计理念:
    - Flow 是无状态的，所有状态在 Session 和 InvocationContext 中
    - 所有事件只 yield，由 Runner 负责持久化
    - max_iterations 由 Agent 定义，Flow 从 Agent 获取
    """

    # 默认最大迭代次数（当 Agent 未指定时使用）
    DEFAULT_MAX_ITERATIONS = 10

    def __init__(self):
        self.request_processors: list[RequestProcessor] = []
        logger.debug(f"[{self.__class__.__name__}] Created")

    def get_max_iterations(self, agent: 'BaseAgent') -> int:
        """从 Agent 获取最大迭代次数"""
        return getattr(agent, 'max_iterations', self.DEFAULT_MAX_ITERATIONS)

    # ==================== 核心抽象方法 ====================

    @abstractmethod
    async def run_async(self, ctx: 'InvocationContext') -> AsyncGenerator[Event, None]:
        """
        执行完整的 Reason-Act 循环

        Yields:
            执行过程中的事件（流式模式下包含 partial 事件）
        """
        raise NotImplementedError
        yield  # 保持为 AsyncGenerator

    # ==================== 单步执行 ====================

    async def _run_one_step_async(self, ctx: 'InvocationContext') -> AsyncGenerator[Event, None]:
        """一次 LLM 调用 + 对其响应的处理"""
        llm_request = LlmRequest()
        await self._preprocess_async(ctx, llm_request)
        if ctx.end_invocation:
            return

        model_response_event = Event(
            invocation_id=ctx.invocation_id,
            author=ctx.agent.name,
            branch=ctx.branch,
        )
        async for llm_response in self._call_llm_async(ctx, llm_request, model_response_event):
            async for event in self._postprocess_async(ctx, llm_request, llm_response, model_response_event):
                yield event

    async def _preprocess_async(self, ctx: 'InvocationContext', llm_request: LlmRequest) -> None:
        """执行请求处理器链，然后让每个工具登记自己"""
        for processor in self.request_processors:
            await processor.process_async(ctx, llm_request)

        for tool in getattr(ctx.agent, 'canonical_tools', []):
            await tool.process_llm_request(ToolContext(ctx), llm_request)

    async def _call_llm_async(
        self,
        ctx: 'InvocationContext',
        llm_request: LlmRequest,
        model_response_event: Event,
    ) -> AsyncGenerator[LlmResponse, None]:
        agent = ctx.agent

        before_model_callback = getattr(agent, 'before_model_callback', None)
        if before_model_callback:
            callback_context = CallbackContext(ctx, event_actions=model_response_event.actions)
            response = await invoke_callback(before_model_callback, callback_context, llm_request)
            if response:
                logger.info(f"[{agent.name}] Model call replaced by before_model_callback")
                yield response
                return

        llm = agent.canonical_model
        ctx.increment_llm_call_count()
        stream = ctx.run_config.stream
        llm_request.stream = stream

        logger.debug(
            f"[{agent.name}] Calling model={llm.get_model(llm_request)} "
            f"messages={len(llm_request.messages)} tools={len(llm_request.tools)} stream={stream}"
        )

        after_model_callback = getattr(agent, 'after_model_callback', None)
        async for llm_response in llm.generate_async(llm_request, stream=stream):
            if after_model_callback and not llm_response.partial:
                callback_context = CallbackContext(ctx, event_actions=model_response_event.actions)
                altered = await invoke_callback(after_model_callback, callback_context, llm_response)
                if altered:
                    llm_response = altered
            yield llm_response

    async def _postprocess_async(
        self,
        ctx: 'InvocationContext',
        llm_request: LlmRequest,
        llm_response: LlmResponse,
        model_response_event: Event,
    ) -> AsyncGenerator[Event, None]:
        if llm_response.partial:
            if not llm_response.content:
                return
        elif not (llm_response.content or llm_response.function_calls or llm_response.is_error()):
            return

        event = self._finalize_model_response_event(llm_request, llm_response, model_response_event)
        yield event

        if event.error_code:
            logger.warning(f"[{ctx.agent.name}] Model error {event.error_code}: {event.error_message}")
            return

        if not event.get_function_calls():
            return

        function_response_event = await functions.handle_function_calls_async(
            ctx, event, llm_request.tools_dict
        )
        if function_response_event is None:
            return
        yield function_response_event

        transfer_to_agent = function_response_event.actions.transfer_to_agent
        if transfer_to_agent:
            agent_to_run = self._get_agent_to_run(ctx, transfer_to_agent)
            logger.info(f"[{ctx.agent.name}] Transferring to {agent_to_run.name}")
            async for sub_event in agent_to_run.run_async(ctx):
                yield sub_event

    # ==================== 辅助方法 ====================

    def _finalize_model_response_event(
        self,
        llm_request: LlmRequest,
        llm_response: LlmResponse,
        model_response_event: Event,
    ) -> Event:
        """LlmResponse -> Event；partial 事件不携带 actions"""
        event = Event(
            invocation_id=model_response_event.invocation_id,
            author=model_response_event.author,
            branch=model_response_event.branch,
            content=llm_response.to_content(),
            partial=llm_response.partial,
            error_code=llm_response.error_code,
            error_message=llm_response.error_message,
            actions=EventActions() if llm_response.partial else model_response_event.actions,
        )
        if event.get_function_calls():
            functions.populate_client_function_call_id(event)
            event.long_running_tool_ids = functions.get_long_running_function_calls(
                event.get_function_calls(), llm_request.tools_dict
            )
        return event

    def _get_agent_to_run(self, ctx: 'InvocationContext', agent_name: str) -> 'BaseAgent':
        root_agent = ctx.agent.root_agent
        agent_to_run = root_agent.find_agent(agent_name)
        if agent_to_run is None:
            raise AgentNotFoundError(agent_name, root_agent.name)
        return agent_to_run
