"""LoopAgent - 循环执行子 Agent（编排器）"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, AsyncGenerator, Optional

from typing_extensions import override

from .base_agent import BaseAgent
from ..events import Event

if TYPE_CHECKING:
    from .invocation_context import InvocationContext

logger = logging.getLogger(__name__)


class LoopAgent(BaseAgent):
    """
    循环执行 Agent - 重复运行子 Agent 直到满足条件

    这是一个编排器（shell agent），它本身不调用 LLM，
    每轮按顺序完整执行一遍子 Agent。

    停止条件：
    - 达到 max_iterations
    - 子 Agent 的事件携带 actions.escalate（例如调用了 exit_loop 工具）

    Example:
        refiner = LoopAgent(
            name="refiner",
            max_iterations=3,
            sub_agents=[
                LlmAgent(name="writer", instruction="写作"),
                LlmAgent(name="critic", instruction="评审，满意则调用 exit_loop", tools=[exit_loop]),
            ]
        )
    """

    max_iterations: Optional[int] = None
    """最大循环次数，None 表示无限循环直到 escalate"""

    @override
    async def _run_async_impl(
        self,
        ctx: 'InvocationContext',
    ) -> AsyncGenerator[Event, None]:
        """循环执行子 Agent"""
        if not self.sub_agents:
            logger.warning(f"[{self.name}] No sub_agents to run")
            return

        logger.info(f"[{self.name}] Starting loop (max={self.max_iterations})")

        loop_idx = 0
        should_exit = False

        while not should_exit:
            if self.max_iterations is not None and loop_idx >= self.max_iterations:
                logger.info(f"[{self.name}] Max iterations reached")
                break

            logger.info(f"[{self.name}] Loop iteration {loop_idx + 1}")

            for sub_agent in self.sub_agents:
                async for event in sub_agent.run_async(ctx):
                    yield event
                    if event.actions.escalate:
                        should_exit = True

                if should_exit:
                    logger.info(f"[{self.name}] Received escalate signal from {sub_agent.name}")
                    break

            loop_idx += 1

        logger.info(f"[{self.name}] Loop completed after {loop_idx} iterations")
