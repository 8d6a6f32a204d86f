"""ParallelAgent - 并发执行子 Agent（编排器）"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncGenerator, Optional

from typing_extensions import override

from .base_agent import BaseAgent
from ..events import Event

if TYPE_CHECKING:
    from .invocation_context import InvocationContext

logger = logging.getLogger(__name__)


@dataclass
class _AgentRunFinished:
    """子 Agent 的事件流结束（正常结束或出错）"""
    error: Optional[BaseException] = None


def _create_branch_ctx_for_sub_agent(
    agent: BaseAgent,
    sub_agent: BaseAgent,
    ctx: 'InvocationContext',
) -> 'InvocationContext':
    """为子 Agent 派生独立分支，分支之间互相看不到对方的历史"""
    branch_suffix = f"{agent.name}.{sub_agent.name}"
    branch = f"{ctx.branch}.{branch_suffix}" if ctx.branch else branch_suffix
    return ctx.model_copy(branch=branch)


async def _merge_agent_run(
    agent_runs: list[AsyncGenerator[Event, None]],
) -> AsyncGenerator[Event, None]:
    """
    并发消费多个事件流，按到达顺序合并

    - 每个子 Agent 在其事件被上游消费（并持久化）之后才继续执行
    - 任一子 Agent 出错时立即把异常抛给调用方，其余任务被取消
    - 调用方提前关闭生成器时取消所有任务
    """
    queue: asyncio.Queue = asyncio.Queue()

    async def process_an_agent(events: AsyncGenerator[Event, None]) -> None:
        try:
            async with contextlib.aclosing(events):
                async for event in events:
                    resume_signal = asyncio.Event()
                    await queue.put((event, resume_signal))
                    await resume_signal.wait()
        except Exception as e:
            await queue.put((_AgentRunFinished(error=e), None))
            return
        await queue.put((_AgentRunFinished(), None))

    tasks = [asyncio.create_task(process_an_agent(run)) for run in agent_runs]
    try:
        remaining = len(tasks)
        while remaining > 0:
            item, resume_signal = await queue.get()
            if isinstance(item, _AgentRunFinished):
                if item.error is not None:
                    raise item.error
                remaining -= 1
                continue
            yield item
            resume_signal.set()
    finally:
        for task in tasks:
            task.cancel()
        # 只等待取消完成，子任务的异常已经通过队列转交
        await asyncio.gather(*tasks, return_exceptions=True)


class ParallelAgent(BaseAgent):
    """
    并发执行 Agent - 同时运行所有子 Agent

    这是一个编排器（shell agent），它本身不调用 LLM。
    子 Agent 在各自的分支 (parent.sub) 中运行，事件按到达顺序交错输出；
    所有子 Agent 都结束后本 Agent 才结束。

    注意：子 Agent 写入相同 state 键时顺序不确定，应使用不同的 output_key。

    Example:
        research = ParallelAgent(
            name="research",
            sub_agents=[
                LlmAgent(name="price", instruction="查询价格", output_key="price"),
                LlmAgent(name="sentiment", instruction="分析情绪", output_key="sentiment"),
            ]
        )
    """

    @override
    async def _run_async_impl(
        self,
        ctx: 'InvocationContext',
    ) -> AsyncGenerator[Event, None]:
        if not self.sub_agents:
            logger.warning(f"[{self.name}] No sub_agents to run")
            return

        logger.info(f"[{self.name}] Starting parallel execution of {len(self.sub_agents)} agents")

        agent_runs = [
            sub_agent.run_async(_create_branch_ctx_for_sub_agent(self, sub_agent, ctx))
            for sub_agent in self.sub_agents
        ]
        async with contextlib.aclosing(_merge_agent_run(agent_runs)) as merged:
            async for event in merged:
                yield event

        logger.info(f"[{self.name}] Parallel execution completed")
