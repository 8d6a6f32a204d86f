"""会话历史 -> OpenAI chat 消息"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Optional

from .base_flow import RequestProcessor

if TYPE_CHECKING:
    from ..agents.invocation_context import InvocationContext
    from ..events import Event
    from ..models import LlmRequest

logger = logging.getLogger(__name__)


def _event_belongs_to_branch(invocation_branch: Optional[str], event: 'Event') -> bool:
    """
    事件是否对当前分支可见

    分支 a.b 能看到 a.b 和祖先分支 a 的事件，看不到兄弟分支 a.c 的事件
    """
    if not invocation_branch or not event.branch:
        return True
    return invocation_branch == event.branch or invocation_branch.startswith(event.branch + '.')


def _is_other_agent_reply(agent_name: str, event: 'Event') -> bool:
    return bool(agent_name) and event.author != agent_name and event.author != 'user'


def _present_other_agent_message(event: 'Event') -> str:
    """其他 Agent 的发言改写为用户侧的上下文说明"""
    lines = ['For context:']
    for part in event.content.parts:
        if part.text:
            lines.append(f"[{event.author}] said: {part.text}")
        elif part.function_call:
            lines.append(
                f"[{event.author}] called tool `{part.function_call.name}` "
                f"with parameters: {part.function_call.args}"
            )
        elif part.function_response:
            lines.append(
                f"[{event.author}] `{part.function_response.name}` tool "
                f"returned result: {part.function_response.response}"
            )
    return '\n'.join(lines)


def _to_tool_call(function_call: Any) -> dict[str, Any]:
    return {
        'id': function_call.id,
        'type': 'function',
        'function': {
            'name': function_call.name,
            'arguments': json.dumps(function_call.args, ensure_ascii=False),
        },
    }


def get_contents(
    events: list['Event'],
    agent_name: str,
    current_branch: Optional[str] = None,
) -> list[dict[str, Any]]:
    """
    把事件渲染为消息列表

    - 丢弃 partial、无内容、不属于当前分支的事件
    - 其他 Agent 的事件改写为 "For context:" 用户消息
    - 没有对应响应的函数调用不渲染为 tool_calls（例如仍在运行的长任务）
    """
    filtered = [
        event for event in events
        if not event.partial
        and event.content is not None
        and event.content.parts
        and _event_belongs_to_branch(current_branch, event)
    ]

    answered_ids = {
        response.id
        for event in filtered
        if not _is_other_agent_reply(agent_name, event)
        for response in event.get_function_responses()
    }

    messages: list[dict[str, Any]] = []
    for event in filtered:
        if _is_other_agent_reply(agent_name, event):
            messages.append({'role': 'user', 'content': _present_other_agent_message(event)})
            continue

        responses = event.get_function_responses()
        if responses:
            for response in responses:
                messages.append({
                    'role': 'tool',
                    'tool_call_id': response.id,
                    'name': response.name,
                    'content': json.dumps(response.response, ensure_ascii=False, default=str),
                })
            continue

        text = event.text
        calls = [fc for fc in event.get_function_calls() if fc.id in answered_ids]
        if calls:
            messages.append({
                'role': 'assistant',
                'content': text or None,
                'tool_calls': [_to_tool_call(fc) for fc in calls],
            })
        elif text:
            role = 'user' if event.author == 'user' else 'assistant'
            messages.append({'role': role, 'content': text})

    return messages


class ContentsRequestProcessor(RequestProcessor):
    """
    历史处理器

    include_contents='none' 时只保留当前调用产生的事件
    """

    async def process_async(self, ctx: 'InvocationContext', request: 'LlmRequest') -> None:
        agent = ctx.agent
        events = ctx.session.events
        if getattr(agent, 'include_contents', 'default') == 'none':
            events = [e for e in events if e.invocation_id == ctx.invocation_id]

        request.messages.extend(get_contents(events, agent.name, ctx.branch))
        logger.debug(f"[Contents] agent={agent.name} messages={len(request.messages)}")


request_processor = ContentsRequestProcessor()
