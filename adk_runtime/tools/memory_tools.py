"""
Memory 工具 - 让 Agent 能够访问长期记忆

提供两种工具：
1. PreloadMemoryTool: 在每次 LLM 请求前自动把相关记忆注入系统指令，不暴露给模型
2. LoadMemoryTool: 作为普通工具，让模型主动搜索记忆
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from typing_extensions import override

from .base_tool import BaseTool
from .tool_context import ToolContext

if TYPE_CHECKING:
    from ..models import LlmRequest

logger = logging.getLogger(__name__)


class LoadMemoryTool(BaseTool):
    """模型主动调用的记忆搜索工具"""

    name: str = "load_memory"
    description: str = (
        "Loads the memory for the current user. "
        "Use this when the answer may depend on past conversations."
    )
    parameters: dict[str, Any] = {
        'query': {'type': 'string', 'description': 'The query to search memory for'},
    }

    @override
    async def run_async(self, args: dict[str, Any], tool_context: ToolContext) -> dict[str, Any]:
        query = args.get('query', '')
        result = await tool_context.search_memory(query)
        logger.debug(f"[load_memory] query={query!r} hits={len(result)}")
        return {'memories': [entry.to_dict() for entry in result.entries]}


class PreloadMemoryTool(BaseTool):
    """
    自动预加载记忆

    工作原理：
        1. Flow 构建请求时调用每个工具的 process_llm_request
        2. 本工具用当前用户消息搜索记忆
        3. 把命中的记忆作为系统指令追加，模型直接使用上下文回答
    """

    name: str = "preload_memory"
    description: str = "Automatically preload relevant memories (internal use only)"

    @override
    async def process_llm_request(self, tool_context: ToolContext, llm_request: 'LlmRequest') -> None:
        user_content = tool_context.user_content
        query = user_content.text if user_content else ''
        if not query:
            return

        result = await tool_context.search_memory(query)
        if not result.entries:
            return

        memory_text = result.to_context_string()
        llm_request.append_instructions([
            "The following content is from your previous conversations with the user.\n"
            "They may be useful for answering the user's current query.\n"
            f"<PAST_CONVERSATIONS>\n{memory_text}\n</PAST_CONVERSATIONS>"
        ])
        logger.debug(f"[preload_memory] Injected {len(result)} memories")


load_memory = LoadMemoryTool()
preload_memory = PreloadMemoryTool()
