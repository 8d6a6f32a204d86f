"""LLM 响应的标准化格式"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .content import Content, FunctionCall, Part


@dataclass
class LlmResponse:
    """
    标准化的 LLM 响应格式

    这个类统一了不同 LLM 的响应格式，使 Flow 层可以用一致的方式处理响应。

    Attributes:
        content: 文本内容；partial 响应中是到目前为止累积的文本
        function_calls: 工具调用列表
        finish_reason: 完成原因 (stop, tool_calls, length, etc.)
        model: 实际使用的模型名称
        usage: token 使用统计
        error_code: 模型侧错误码（非传输错误，例如内容被过滤）
        error_message: 模型侧错误信息
        partial: 是否是流式响应的部分内容
        delta: 流式响应中本次新到达的文本
    """

    content: str = ""
    function_calls: list[FunctionCall] = field(default_factory=list)
    finish_reason: Optional[str] = None
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    # 流式响应相关
    partial: bool = False
    delta: str = ""

    metadata: dict[str, Any] = field(default_factory=dict)

    def is_error(self) -> bool:
        return self.error_code is not None

    def to_content(self) -> Optional[Content]:
        """
        转换为 model 角色的 Content

        partial 响应携带累积文本；完整响应携带文本 + 所有函数调用
        """
        if self.partial:
            return Content.from_text(self.content, role='model') if self.content else None
        parts: list[Part] = []
        if self.content:
            parts.append(Part(text=self.content))
        parts.extend(Part(function_call=fc) for fc in self.function_calls)
        if not parts:
            return None
        return Content(role='model', parts=parts)

    @classmethod
    def from_error(cls, error_code: str, error_message: str) -> LlmResponse:
        """从模型侧错误创建响应"""
        return cls(error_code=error_code, error_message=error_message)

    @classmethod
    def create_delta(cls, delta: str, accumulated: str, chunk_index: int = 0) -> LlmResponse:
        """创建流式增量响应：content 为累积文本，delta 为本次新增部分"""
        return cls(
            content=accumulated,
            partial=True,
            delta=delta,
            metadata={"chunk_index": chunk_index},
        )
