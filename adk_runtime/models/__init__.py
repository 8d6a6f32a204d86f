"""models 模块 - LLM 抽象与消息内容"""

from .base_llm import BaseLlm
from .content import Content, FunctionCall, FunctionResponse, Part
from .llm_request import LlmRequest
from .llm_response import LlmResponse
from .openai_llm import OpenAILlm

__all__ = [
    'BaseLlm',
    'Content',
    'FunctionCall',
    'FunctionResponse',
    'LlmRequest',
    'LlmResponse',
    'OpenAILlm',
    'Part',
]
