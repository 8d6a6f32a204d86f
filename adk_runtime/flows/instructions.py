"""指令处理：global_instruction / instruction 与 state 模板替换"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from ..agents.callback_context import CallbackContext
from ..sessions.state import State
from .base_flow import RequestProcessor

if TYPE_CHECKING:
    from ..agents.invocation_context import InvocationContext
    from ..models import LlmRequest

logger = logging.getLogger(__name__)

_TEMPLATE_PATTERN = re.compile(r'{+[^{}]*}+')
_ARTIFACT_PREFIX = 'artifact.'
_MISSING = object()


def _is_valid_state_name(var_name: str) -> bool:
    """合法的名称：标识符，或 app:/user:/temp: 前缀 + 标识符"""
    parts = var_name.split(':')
    if len(parts) == 1:
        return var_name.isidentifier()
    if len(parts) == 2:
        prefix = parts[0] + ':'
        return prefix in (State.APP_PREFIX, State.USER_PREFIX, State.TEMP_PREFIX) and parts[1].isidentifier()
    return False


async def inject_session_state(template: str, invocation_context: 'InvocationContext') -> str:
    """
    把模板中的 {key} 替换为 state 中的值

    - {key}: 无前缀的键按 temp: > 会话 > user: > app: 顺序查找，缺失时抛出 KeyError
    - {key?}: 可选，缺失时替换为空字符串
    - {app:key} / {user:key} / {temp:key}: 直接按完整键查找
    - {artifact.name}: 替换为 artifact 的文本内容
    - 不是合法名称的花括号内容原样保留（例如 JSON 片段）
    """
    state = State(invocation_context.session.state, {})
    result: list[str] = []
    last_end = 0

    for match in _TEMPLATE_PATTERN.finditer(template):
        result.append(template[last_end:match.start()])
        result.append(await _replace_match(match, state, invocation_context))
        last_end = match.end()
    result.append(template[last_end:])
    return ''.join(result)


async def _replace_match(match: re.Match, state: State, invocation_context: 'InvocationContext') -> str:
    var_name = match.group().lstrip('{').rstrip('}').strip()
    optional = var_name.endswith('?')
    if optional:
        var_name = var_name[:-1]

    if var_name.startswith(_ARTIFACT_PREFIX):
        filename = var_name[len(_ARTIFACT_PREFIX):]
        if invocation_context.artifact_service is None:
            raise ValueError("Artifact service is not initialized.")
        artifact = await invocation_context.artifact_service.load_artifact(
            app_name=invocation_context.app_name,
            user_id=invocation_context.user_id,
            session_id=invocation_context.session.id,
            filename=filename,
        )
        if artifact is None:
            if optional:
                return ''
            raise KeyError(f"Artifact {filename} not found.")
        if artifact.text is not None:
            return artifact.text
        if artifact.inline_data is not None:
            return artifact.inline_data.data.decode('utf-8', errors='replace')
        return ''

    if not _is_valid_state_name(var_name):
        return match.group()

    if ':' in var_name:
        value = state.get(var_name, _MISSING)
    else:
        value = state.resolve(var_name, _MISSING)

    if value is _MISSING:
        if optional:
            return ''
        raise KeyError(f"Context variable not found: `{var_name}`.")
    return str(value)


class InstructionsRequestProcessor(RequestProcessor):
    """
    指令处理器

    依次追加根 Agent 的 global_instruction 和当前 Agent 的 instruction；
    字符串指令做 state 模板替换，provider 返回的指令原样使用
    """

    async def process_async(self, ctx: 'InvocationContext', request: 'LlmRequest') -> None:
        from ..agents.llm_agent import LlmAgent

        agent = ctx.agent
        root_agent = agent.root_agent
        readonly_context = CallbackContext(ctx)

        if isinstance(root_agent, LlmAgent) and root_agent.global_instruction:
            raw, bypass_injection = await root_agent.canonical_global_instruction(readonly_context)
            if not bypass_injection:
                raw = await inject_session_state(raw, ctx)
            request.append_instructions([raw])

        if isinstance(agent, LlmAgent) and agent.instruction:
            raw, bypass_injection = await agent.canonical_instruction(readonly_context)
            if not bypass_injection:
                raw = await inject_session_state(raw, ctx)
            request.append_instructions([raw])


request_processor = InstructionsRequestProcessor()
