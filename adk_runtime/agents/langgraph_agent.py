"""LangGraphAgent - 按节点图执行子 Agent（编排器）"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, AsyncGenerator, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import override

from .base_agent import BaseAgent
from .callback_context import invoke_callback
from ..errors import GraphExecutionError, InvalidAgentConfigurationError
from ..events import Event

if TYPE_CHECKING:
    from .invocation_context import InvocationContext

logger = logging.getLogger(__name__)

# (last_event, invocation_context) -> bool，可以是协程函数
NodeCondition = Callable[..., Any]


class LangGraphNode(BaseModel):
    """
    图中的一个节点

    Attributes:
        name: 节点名称（图内唯一，可以与 Agent 名称不同）
        agent: 节点执行的 Agent
        targets: 可能的后继节点名称，按顺序尝试
        condition: 进入本节点的条件；None 表示总是可以进入
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    agent: BaseAgent
    targets: list[str] = Field(default_factory=list)
    condition: Optional[NodeCondition] = None


class LangGraphAgent(BaseAgent):
    """
    图执行 Agent

    从 root_node 开始执行；每个节点执行完后，依次检查它的 targets，
    进入第一个 condition 通过的后继节点；没有可进入的后继时结束。
    节点可以指回之前的节点形成循环，执行步数超过 max_steps 时抛出 GraphExecutionError。

    Example:
        graph = LangGraphAgent(
            name="review_graph",
            nodes=[
                LangGraphNode(name="draft", agent=writer, targets=["review"]),
                LangGraphNode(name="review", agent=critic, targets=["draft", "publish"]),
                LangGraphNode(
                    name="publish",
                    agent=publisher,
                    condition=lambda event, ctx: "APPROVED" in event.text,
                ),
            ],
            root_node="draft",
        )
    """

    nodes: list[LangGraphNode]
    root_node: str
    max_steps: int = 50
    """最多执行的节点数"""

    @override
    def model_post_init(self, __context: Any) -> None:
        self._validate_graph()
        # 节点的 Agent 作为子 Agent 挂到树上（同一个 Agent 可被多个节点复用）
        if not self.sub_agents:
            unique_agents: list[BaseAgent] = []
            for node in self.nodes:
                if not any(node.agent is agent for agent in unique_agents):
                    unique_agents.append(node.agent)
            self.sub_agents = unique_agents
        super().model_post_init(__context)

    def _validate_graph(self) -> None:
        if not self.nodes:
            raise InvalidAgentConfigurationError(f"LangGraphAgent '{self.name}' requires at least one node")

        names = [node.name for node in self.nodes]
        if len(set(names)) != len(names):
            raise InvalidAgentConfigurationError(f"LangGraphAgent '{self.name}' has duplicate node names: {names}")

        if self.root_node not in names:
            raise InvalidAgentConfigurationError(
                f"Root node '{self.root_node}' not found in LangGraphAgent '{self.name}'"
            )

        for node in self.nodes:
            for target in node.targets:
                if target not in names:
                    raise InvalidAgentConfigurationError(
                        f"Node '{node.name}' targets unknown node '{target}'"
                    )

        if self.max_steps <= 0:
            raise InvalidAgentConfigurationError("max_steps must be positive")

    def get_node(self, name: str) -> LangGraphNode:
        for node in self.nodes:
            if node.name == name:
                return node
        raise GraphExecutionError(f"Node '{name}' not found in graph '{self.name}'")

    @override
    async def _run_async_impl(
        self,
        ctx: 'InvocationContext',
    ) -> AsyncGenerator[Event, None]:
        node: Optional[LangGraphNode] = self.get_node(self.root_node)
        steps = 0
        visited: list[str] = []

        while node is not None:
            steps += 1
            if steps > self.max_steps:
                raise GraphExecutionError(
                    f"Graph '{self.name}' exceeded max_steps={self.max_steps}, "
                    f"path: {' -> '.join(visited[-10:])}"
                )
            visited.append(node.name)
            logger.info(f"[{self.name}] Step {steps}: node={node.name} agent={node.agent.name}")

            last_event: Optional[Event] = None
            async for event in node.agent.run_async(ctx):
                if not event.partial:
                    last_event = event
                yield event

            node = await self._next_node(node, last_event, ctx)

        logger.info(f"[{self.name}] Graph completed after {steps} steps: {' -> '.join(visited)}")

    async def _next_node(
        self,
        node: LangGraphNode,
        last_event: Optional[Event],
        ctx: 'InvocationContext',
    ) -> Optional[LangGraphNode]:
        """第一个 condition 通过的后继节点；本节点没有产生事件时只考虑无条件的后继"""
        for target_name in node.targets:
            target = self.get_node(target_name)
            if target.condition is None:
                return target
            if last_event is None:
                continue
            if await invoke_callback(target.condition, last_event, ctx):
                return target
        return None
