"""LLM 请求的标准化格式"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..tools import BaseTool


@dataclass
class LlmRequest:
    """
    标准化的 LLM 请求格式

    Flow 的请求处理器逐步填充这个对象：指令、历史消息、工具声明。
    不同的 LLM 实现会将这个统一格式转换为各自的 API 格式。

    Attributes:
        model: 模型名称
        system_instruction: 系统指令（多段指令以空行拼接）
        messages: 历史消息列表 (OpenAI chat 格式: role, content, tool_calls)
        tools: 工具定义列表 (OpenAI function calling 格式)
        tools_dict: 工具名 -> 工具实例，用于执行模型返回的调用
        temperature: 温度参数
        max_tokens: 最大 token 数
        stream: 是否启用流式输出
    """

    model: str = ""
    system_instruction: str = ""
    messages: list[dict[str, Any]] = field(default_factory=list)
    tools: list[dict[str, Any]] = field(default_factory=list)
    tools_dict: dict[str, 'BaseTool'] = field(default_factory=dict, repr=False)
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    stream: bool = False

    # 扩展配置（不同 LLM 可能有特定配置）
    extra_config: dict[str, Any] = field(default_factory=dict)

    # ==================== 指令 ====================

    def append_instructions(self, instructions: list[str]) -> None:
        """追加系统指令"""
        for instruction in instructions:
            if not instruction:
                continue
            if self.system_instruction:
                self.system_instruction += "\n\n" + instruction
            else:
                self.system_instruction = instruction

    # ==================== 工具 ====================

    def append_tools(self, tools: list['BaseTool']) -> None:
        """追加工具声明，并登记到 tools_dict"""
        for tool in tools:
            if tool.name in self.tools_dict:
                continue
            self.tools_dict[tool.name] = tool
            self.tools.append(tool.to_openai_tool())

    def to_openai_format(self) -> dict[str, Any]:
        """转换为 OpenAI API 格式"""
        messages = list(self.messages)
        if self.system_instruction:
            messages.insert(0, {"role": "system", "content": self.system_instruction})

        params: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "stream": self.stream,
        }
        if self.max_tokens is not None:
            params["max_tokens"] = self.max_tokens

        if self.tools:
            params["tools"] = self.tools
            params["tool_choice"] = "auto"

        params.update(self.extra_config)
        return params
