"""内置工具：Agent 跳转与退出循环"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import Field
from typing_extensions import override

from .base_tool import BaseTool
from .tool_context import ToolContext

logger = logging.getLogger(__name__)


class TransferToAgentTool(BaseTool):
    """
    内置工具：跳转到另一个 Agent

    让 LLM 可以主动决定将控制权交给其他 Agent。
    工具只设置 actions.transfer_to_agent，实际跳转由 Flow 完成。
    """

    name: str = "transfer_to_agent"
    description: str = (
        "Transfer the question to another agent. "
        "Use this when the task requires expertise from a different agent."
    )
    available_agents: list[str] = Field(default_factory=list)
    """可以跳转到的 Agent 名称列表"""

    def model_post_init(self, __context: Any) -> None:
        super().model_post_init(__context)
        agent_name_param: dict[str, Any] = {
            'type': 'string',
            'description': 'The name of the agent to transfer control to',
        }
        if self.available_agents:
            agent_name_param['enum'] = list(self.available_agents)
        self.parameters = {'agent_name': agent_name_param}

    @override
    async def run_async(self, args: dict[str, Any], tool_context: ToolContext) -> dict[str, Any]:
        agent_name = args.get('agent_name', '')
        if not agent_name:
            return {'error': 'agent_name is required'}

        if self.available_agents and agent_name not in self.available_agents:
            return {
                'error': f"Agent '{agent_name}' is not available. Available agents: {self.available_agents}"
            }

        logger.info(f"[transfer_to_agent] {tool_context.agent_name} -> {agent_name}")
        tool_context.actions.transfer_to_agent = agent_name
        return {'message': f"Transferred to agent: {agent_name}"}


class ExitLoopTool(BaseTool):
    """
    内置工具：退出循环

    用于 LoopAgent 场景，设置 escalate 让外层循环结束；
    同时跳过总结，当前 Agent 的回合随之结束。
    """

    name: str = "exit_loop"
    description: str = "Exits the loop. Call this function only when you are instructed to do so."

    @override
    async def run_async(self, args: dict[str, Any], tool_context: ToolContext) -> dict[str, Any]:
        tool_context.actions.escalate = True
        tool_context.actions.skip_summarization = True
        return {'message': 'Loop exited successfully'}


def create_transfer_tool(available_agents: list[str]) -> TransferToAgentTool:
    """创建 transfer_to_agent 工具"""
    return TransferToAgentTool(available_agents=available_agents)


exit_loop = ExitLoopTool()
