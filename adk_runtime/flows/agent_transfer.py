"""Agent 跳转：向请求中加入可跳转目标的说明和 transfer_to_agent 工具"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..tools.tool_context import ToolContext
from ..tools.transfer_to_agent_tool import create_transfer_tool
from .base_flow import RequestProcessor

if TYPE_CHECKING:
    from ..agents.base_agent import BaseAgent
    from ..agents.invocation_context import InvocationContext
    from ..models import LlmRequest


def _build_target_agents_info(target_agent: 'BaseAgent') -> str:
    return f"""
Agent name: {target_agent.name}
Agent description: {target_agent.description or f'Agent {target_agent.name}'}
"""


def build_transfer_instructions(agent: 'BaseAgent', target_agents: list['BaseAgent']) -> str:
    instructions = f"""
You have a list of other agents to transfer to:

{''.join(_build_target_agents_info(target) for target in target_agents)}

If you are the best to answer the question according to your description, you
can answer it.

If another agent is better for answering the question according to its
description, call `transfer_to_agent` function to transfer the
question to that agent. When transferring, do not generate any text other than
the function call.
"""
    parent = agent.parent_agent
    if parent is not None and any(target is parent for target in target_agents):
        instructions += f"""
Your parent agent is {parent.name}. If neither the other agents nor
you are best for answering the question according to the descriptions, transfer
to your parent agent.
"""
    return instructions


class AgentTransferRequestProcessor(RequestProcessor):
    """有可跳转目标时，追加跳转说明和带 enum 的 transfer_to_agent 工具"""

    async def process_async(self, ctx: 'InvocationContext', request: 'LlmRequest') -> None:
        agent = ctx.agent
        get_targets = getattr(agent, 'get_transferable_agents', None)
        if get_targets is None:
            return

        target_agents = get_targets()
        if not target_agents:
            return

        request.append_instructions([build_transfer_instructions(agent, target_agents)])
        transfer_tool = create_transfer_tool([target.name for target in target_agents])
        await transfer_tool.process_llm_request(ToolContext(ctx), request)


request_processor = AgentTransferRequestProcessor()
