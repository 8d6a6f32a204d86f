"""SequentialAgent - 顺序执行子 Agent（编排器）"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, AsyncGenerator

from typing_extensions import override

from .base_agent import BaseAgent
from ..events import Event

if TYPE_CHECKING:
    from .invocation_context import InvocationContext

logger = logging.getLogger(__name__)


class SequentialAgent(BaseAgent):
    """
    顺序执行 Agent - 按顺序运行所有子 Agent

    这是一个编排器（shell agent），它本身不调用 LLM，
    只是按声明顺序执行子 Agent。所有子 Agent 共享同一个 Session，
    前一个 Agent 通过 output_key 写入的值对后一个 Agent 的 {key} 模板可见。

    Example:
        pipeline = SequentialAgent(
            name="pipeline",
            sub_agents=[
                LlmAgent(name="analyzer", instruction="分析需求", output_key="analysis"),
                LlmAgent(name="generator", instruction="根据 {analysis} 生成方案"),
            ]
        )
    """

    @override
    async def _run_async_impl(
        self,
        ctx: 'InvocationContext',
    ) -> AsyncGenerator[Event, None]:
        """顺序执行所有子 Agent"""
        if not self.sub_agents:
            logger.warning(f"[{self.name}] No sub_agents to run")
            return

        logger.info(f"[{self.name}] Starting sequential execution of {len(self.sub_agents)} agents")

        for i, sub_agent in enumerate(self.sub_agents):
            logger.info(f"[{self.name}] Running {i+1}/{len(self.sub_agents)}: {sub_agent.name}")
            async for event in sub_agent.run_async(ctx):
                yield event

        logger.info(f"[{self.name}] Sequential execution completed")
