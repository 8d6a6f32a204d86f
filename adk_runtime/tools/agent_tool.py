"""AgentTool - 把一个 Agent 包装成可被模型调用的工具"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import model_validator
from typing_extensions import override

from ..agents.base_agent import BaseAgent
from ..models import Content
from ..sessions import InMemorySessionService, State
from .base_tool import BaseTool
from .tool_context import ToolContext

logger = logging.getLogger(__name__)


class AgentTool(BaseTool):
    """
    Agent 工具

    与 transfer_to_agent 不同，控制权不会转移：
    被包装的 Agent 在独立的临时会话中运行，最终文本作为工具结果返回给调用方模型。
    子 Agent 产生的 state_delta 会回写到调用方的 state。

    Example:
        summarizer = LlmAgent(name="summarizer", model=llm, instruction="总结输入")
        writer = LlmAgent(name="writer", model=llm, tools=[AgentTool(agent=summarizer)])
    """

    agent: BaseAgent
    skip_summarization: bool = False
    """True 时工具结果直接作为最终响应"""

    name: str = ''
    parameters: dict[str, Any] = {
        'request': {'type': 'string', 'description': 'The request to send to the agent'},
    }

    @model_validator(mode='before')
    @classmethod
    def _populate_from_agent(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get('agent') is not None:
            agent = data['agent']
            data.setdefault('name', agent.name)
            data.setdefault('description', agent.description)
        return data

    @override
    async def run_async(self, args: dict[str, Any], tool_context: ToolContext) -> dict[str, Any]:
        from ..runner import Runner

        if self.skip_summarization:
            tool_context.actions.skip_summarization = True

        request = args.get('request', '')
        session_service = InMemorySessionService()
        initial_state = {
            key: value
            for key, value in tool_context.state.to_dict().items()
            if not key.startswith(State.TEMP_PREFIX)
        }
        session = await session_service.create_session(
            app_name=self.agent.name,
            user_id='tmp_user',
            state=initial_state,
        )
        runner = Runner(
            app_name=self.agent.name,
            agent=self.agent,
            session_service=session_service,
        )

        logger.info(f"[AgentTool {self.name}] Running agent for call={tool_context.function_call_id}")
        last_text = ''
        async for event in runner.run_async(
            user_id=session.user_id,
            session_id=session.id,
            new_message=Content.from_text(request),
        ):
            if event.actions.state_delta:
                tool_context.state.update(event.actions.state_delta)
            if not event.partial and event.text:
                last_text = event.text

        return {'result': last_text}
