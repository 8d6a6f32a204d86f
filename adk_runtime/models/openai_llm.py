"""OpenAI 兼容的 LLM 实现"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Optional

import openai
from pydantic import PrivateAttr

from ..errors import ModelTransportError
from .base_llm import BaseLlm
from .content import FunctionCall
from .llm_request import LlmRequest
from .llm_response import LlmResponse

logger = logging.getLogger(__name__)


class OpenAILlm(BaseLlm):
    """
    OpenAI 兼容的 LLM 实现（chat.completions 接口）

    - 非流式只 yield 一次完整响应
    - 流式 yield 多个增量响应，最后 yield 聚合后的完整响应
    - openai.APIError 系列统一转换为 ModelTransportError
    """

    api_base: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 60.0
    show_request: bool = False

    _client: Any = PrivateAttr(default=None)

    @property
    def client(self) -> openai.AsyncOpenAI:
        """获取 OpenAI 异步客户端（懒加载）"""
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                base_url=self.api_base,
                api_key=self.api_key,
                timeout=self.timeout,
            )
        return self._client

    # ==================== 统一生成接口 ====================

    async def generate_async(
        self,
        request: LlmRequest,
        stream: bool = False,
    ) -> AsyncIterator[LlmResponse]:
        params = request.to_openai_format()
        params["model"] = self.get_model(request)
        params["stream"] = stream

        if self.show_request:
            logger.info(
                f"[OpenAILlm] Request model={params['model']} "
                f"messages={len(params['messages'])} tools={len(params.get('tools', []))}"
            )

        try:
            if stream:
                stream_response = await self.client.chat.completions.create(**params)
                async for response in self._process_stream(stream_response):
                    yield response
            else:
                response = await self.client.chat.completions.create(**params)
                yield self._parse_response(response)
        except openai.APIError as e:
            raise ModelTransportError(
                f"OpenAI request failed: {e}",
                model=params["model"],
                cause=e,
            ) from e

    # ==================== 响应解析 ====================

    def _parse_response(self, response: Any) -> LlmResponse:
        """解析 OpenAI 非流式响应"""
        if not response.choices:
            return LlmResponse.from_error('EMPTY_RESPONSE', 'Model returned no choices')

        choice = response.choices[0]
        message = choice.message

        function_calls = []
        for tc in message.tool_calls or []:
            function_calls.append(FunctionCall(
                id=tc.id,
                name=tc.function.name,
                args=self._parse_arguments(tc.function.arguments),
            ))

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LlmResponse(
            content=message.content or "",
            function_calls=function_calls,
            finish_reason=choice.finish_reason,
            model=response.model,
            usage=usage,
        )

    async def _process_stream(self, stream: Any) -> AsyncIterator[LlmResponse]:
        """处理流式响应：逐块 yield 累积文本（附带本次增量），最后 yield 完整响应"""
        full_content = ""
        tool_calls_data: list[dict[str, Any]] = []
        finish_reason = None
        model_name = None
        chunk_index = 0

        async for chunk in stream:
            if not chunk.choices:
                continue

            choice = chunk.choices[0]
            delta = choice.delta

            if chunk.model:
                model_name = chunk.model

            if delta.content:
                full_content += delta.content
                yield LlmResponse.create_delta(delta.content, full_content, chunk_index)
                chunk_index += 1

            # 工具调用参数按 index 分片到达，需要拼接
            for tc in delta.tool_calls or []:
                while tc.index >= len(tool_calls_data):
                    tool_calls_data.append({"id": None, "name": None, "arguments": ""})
                existing = tool_calls_data[tc.index]
                if tc.id:
                    existing["id"] = tc.id
                if tc.function and tc.function.name:
                    existing["name"] = tc.function.name
                if tc.function and tc.function.arguments:
                    existing["arguments"] += tc.function.arguments

            if choice.finish_reason:
                finish_reason = choice.finish_reason

        function_calls = [
            FunctionCall(
                id=tc["id"] or "",
                name=tc["name"],
                args=self._parse_arguments(tc["arguments"]),
            )
            for tc in tool_calls_data
            if tc["name"]
        ]

        yield LlmResponse(
            content=full_content,
            function_calls=function_calls,
            finish_reason=finish_reason,
            model=model_name or self.model,
        )

    @staticmethod
    def _parse_arguments(raw: Optional[str]) -> dict[str, Any]:
        if not raw:
            return {}
        try:
            args = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"[OpenAILlm] Invalid tool arguments JSON: {raw!r}")
            return {}
        return args if isinstance(args, dict) else {}
