"""LLM 抽象基类"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from pydantic import BaseModel, ConfigDict

from .llm_request import LlmRequest
from .llm_response import LlmResponse


class BaseLlm(BaseModel, ABC):
    """
    LLM 抽象基类（使用 Pydantic）

    统一生成器接口：无论流式/非流式，都返回 AsyncIterator。
    - stream=False: 只 yield 一次完整响应 (partial=False)
    - stream=True: yield 多个增量响应 (partial=True) + 最后一个完整响应 (partial=False)

    传输层失败（网络、鉴权、限流）必须抛出 ModelTransportError，
    模型侧的业务错误用 LlmResponse.error_code 表达。
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: str = ""

    @abstractmethod
    async def generate_async(
        self,
        request: LlmRequest,
        stream: bool = False,
    ) -> AsyncIterator[LlmResponse]:
        """
        异步生成

        Args:
            request: LLM 请求
            stream: 是否流式生成

        Yields:
            LlmResponse
        """
        raise NotImplementedError
        yield  # 保持为 AsyncIterator

    def get_model(self, request: LlmRequest) -> str:
        """获取实际使用的模型名称"""
        return request.model or self.model
