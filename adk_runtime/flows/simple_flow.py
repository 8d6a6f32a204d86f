"""简单的 Reason-Act 循环实现（支持多 Agent + Memory）"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, AsyncGenerator

from . import agent_transfer, contents, instructions
from .base_flow import BaseFlow, RequestProcessor
from ..events import Event

if TYPE_CHECKING:
    from ..agents.invocation_context import InvocationContext
    from ..models import LlmRequest

logger = logging.getLogger(__name__)


class BasicRequestProcessor(RequestProcessor):
    """填充模型名称和生成参数"""

    async def process_async(self, ctx: 'InvocationContext', request: 'LlmRequest') -> None:
        agent = ctx.agent
        request.model = agent.canonical_model.model
        request.temperature = agent.temperature
        request.max_tokens = agent.max_tokens


class SimpleFlow(BaseFlow):
    """
    简单的 Reason-Act 循环实现

    处理器链（按顺序）：
    1. BasicRequestProcessor: 模型与生成参数
    2. InstructionsRequestProcessor: global_instruction + instruction（state 模板替换）
    3. ContentsRequestProcessor: 会话历史
    4. AgentTransferRequestProcessor: 跳转说明 + transfer_to_agent 工具
    然后每个工具通过 process_llm_request 登记自己（PreloadMemoryTool 在这里注入记忆）

    循环在以下情况结束：
    - 最后一个事件是最终响应（无函数调用，或 skip_summarization）
    - ctx.end_invocation 被置位
    - 达到 Agent 的 max_iterations，此时产生一个错误事件
    """

    def __init__(self):
        super().__init__()
        self.request_processors.extend([
            BasicRequestProcessor(),
            instructions.request_processor,
            contents.request_processor,
            agent_transfer.request_processor,
        ])

    async def run_async(self, ctx: 'InvocationContext') -> AsyncGenerator[Event, None]:
        max_iterations = self.get_max_iterations(ctx.agent)
        iteration = 0

        while True:
            if max_iterations and iteration >= max_iterations:
                logger.warning(f"[SimpleFlow] {ctx.agent.name} reached max iterations ({max_iterations})")
                yield Event(
                    invocation_id=ctx.invocation_id,
                    author=ctx.agent.name,
                    branch=ctx.branch,
                    error_code='MAX_ITERATIONS_EXCEEDED',
                    error_message=f"达到最大迭代次数限制 ({max_iterations})",
                )
                return

            iteration += 1
            logger.debug(f"[SimpleFlow] {ctx.agent.name} iteration {iteration}")

            last_event = None
            async for event in self._run_one_step_async(ctx):
                last_event = event
                yield event

            if last_event is None or last_event.is_final_response() or ctx.end_invocation:
                break
            if last_event.partial:
                raise ValueError("Last event shouldn't be partial. LLM max output limit may be reached.")
