"""工具调用的执行与函数响应事件的构建"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any, Optional

from ..agents.callback_context import invoke_callback
from ..errors import McpError, ModelTransportError, ToolExecutionError, ToolNotFoundError
from ..events import Event, EventActions
from ..models.content import Content, FunctionCall, FunctionResponse, Part
from ..tools.tool_context import ToolContext

if TYPE_CHECKING:
    from ..agents.invocation_context import InvocationContext
    from ..tools import BaseTool

logger = logging.getLogger(__name__)

CLIENT_FUNCTION_CALL_ID_PREFIX = 'adk-'

# 这些错误说明传输层不可用，不能转换为工具结果交给模型
_FATAL_TOOL_ERRORS = (ModelTransportError, McpError)


def generate_client_function_call_id() -> str:
    return f'{CLIENT_FUNCTION_CALL_ID_PREFIX}{uuid.uuid4()}'


def populate_client_function_call_id(event: Event) -> None:
    """模型没有给出调用 id 时补上一个"""
    for function_call in event.get_function_calls():
        if not function_call.id:
            function_call.id = generate_client_function_call_id()


def get_long_running_function_calls(
    function_calls: list[FunctionCall],
    tools_dict: dict[str, 'BaseTool'],
) -> set[str]:
    return {
        fc.id
        for fc in function_calls
        if fc.name in tools_dict and tools_dict[fc.name].is_long_running
    }


async def handle_function_calls_async(
    invocation_context: 'InvocationContext',
    function_call_event: Event,
    tools_dict: dict[str, 'BaseTool'],
) -> Optional[Event]:
    """
    依次执行事件中的所有函数调用，合并为一个函数响应事件

    Raises:
        ToolNotFoundError: 模型调用了未声明的工具
    """
    agent = invocation_context.agent
    response_events: list[Event] = []

    for function_call in function_call_event.get_function_calls():
        tool = _get_tool(function_call, tools_dict, agent.name)
        tool_context = ToolContext(invocation_context, function_call_id=function_call.id)
        args = dict(function_call.args)

        logger.info(f"[Tool {tool.name}] call={function_call.id} args={args}")

        response = None
        before_tool_callback = getattr(agent, 'before_tool_callback', None)
        if before_tool_callback:
            response = await invoke_callback(before_tool_callback, tool, args, tool_context)

        if response is None:
            response = await _call_tool_async(tool, args, tool_context)

        after_tool_callback = getattr(agent, 'after_tool_callback', None)
        if after_tool_callback:
            altered = await invoke_callback(after_tool_callback, tool, args, tool_context, response)
            if altered is not None:
                response = altered

        # 长时间运行的工具可以先不返回结果
        if tool.is_long_running and response is None:
            continue

        response_events.append(
            build_function_response_event(tool, response, tool_context, invocation_context)
        )

    if not response_events:
        return None
    return merge_function_response_events(response_events)


async def _call_tool_async(tool: 'BaseTool', args: dict[str, Any], tool_context: ToolContext) -> Any:
    try:
        return await tool.run_async(args=args, tool_context=tool_context)
    except _FATAL_TOOL_ERRORS:
        raise
    except Exception as e:
        error = ToolExecutionError(tool.name, tool_context.function_call_id or '', e)
        logger.warning(f"[Tool {tool.name}] call={tool_context.function_call_id} failed: {e}", exc_info=True)
        return error.to_response()


def _get_tool(function_call: FunctionCall, tools_dict: dict[str, 'BaseTool'], agent_name: str) -> 'BaseTool':
    if function_call.name not in tools_dict:
        raise ToolNotFoundError(function_call.name, agent_name, list(tools_dict))
    return tools_dict[function_call.name]


def build_function_response_event(
    tool: 'BaseTool',
    response: Any,
    tool_context: ToolContext,
    invocation_context: 'InvocationContext',
) -> Event:
    """把工具结果包装为函数响应事件；非 dict 结果放在 result 键下"""
    if not isinstance(response, dict):
        response = {'result': response}

    part = Part(
        function_response=FunctionResponse(
            id=tool_context.function_call_id or '',
            name=tool.name,
            response=response,
        )
    )
    return Event(
        invocation_id=invocation_context.invocation_id,
        author=invocation_context.agent.name,
        branch=invocation_context.branch,
        content=Content(role='user', parts=[part]),
        actions=tool_context.actions,
    )


def merge_function_response_events(events: list[Event]) -> Event:
    """同一轮模型输出的多个函数响应合并为一个事件，actions 一并合并"""
    if len(events) == 1:
        return events[0]

    base = events[0]
    parts: list[Part] = []
    actions = EventActions()
    for event in events:
        if event.content:
            parts.extend(event.content.parts)
        actions.merge(event.actions)

    return Event(
        invocation_id=base.invocation_id,
        author=base.author,
        branch=base.branch,
        content=Content(role='user', parts=parts),
        actions=actions,
    )
