"""FunctionTool - 将普通 Python 函数包装为工具"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
import types
import typing
from typing import Any, Callable, Optional, Union

from .base_tool import BaseTool

logger = logging.getLogger(__name__)

# 工具函数中名为 tool_context 的参数由框架注入，不暴露给模型
TOOL_CONTEXT_PARAM = 'tool_context'

_JSON_TYPES = {
    str: 'string',
    int: 'integer',
    float: 'number',
    bool: 'boolean',
    list: 'array',
    tuple: 'array',
    set: 'array',
    dict: 'object',
}


def _json_type(annotation: Any) -> str:
    """Python 类型注解 -> JSON Schema 类型"""
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        return _json_type(args[0]) if len(args) == 1 else 'string'
    if origin is not None:
        annotation = origin
    return _JSON_TYPES.get(annotation, 'string')


class FunctionTool(BaseTool):
    """
    函数包装工具

    从函数签名和 docstring 自动提取参数信息；
    同步函数在线程中执行，协程函数直接 await。
    """

    func: Callable[..., Any]

    def model_post_init(self, __context: Any) -> None:
        super().model_post_init(__context)
        if not self.parameters:
            self.parameters = self._extract_parameters()

    def _extract_parameters(self) -> dict[str, Any]:
        """从函数签名和 docstring 提取参数定义"""
        sig = inspect.signature(self.func)
        param_descriptions = self._parse_docstring_params(inspect.getdoc(self.func) or '')
        try:
            hints = typing.get_type_hints(self.func)
        except (NameError, TypeError) as e:
            logger.debug(f"[FunctionTool {self.name}] Cannot resolve type hints: {e}")
            hints = {}

        params = {}
        for name, param in sig.parameters.items():
            if name == TOOL_CONTEXT_PARAM:
                continue
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue

            param_info: dict[str, Any] = {'type': _json_type(hints.get(name, str))}
            if param.default is not inspect.Parameter.empty:
                param_info['default'] = param.default
            if name in param_descriptions:
                param_info['description'] = param_descriptions[name]
            params[name] = param_info

        return params

    @staticmethod
    def _parse_docstring_params(docstring: str) -> dict[str, str]:
        """
        解析 docstring 中的参数描述

        支持 Google 风格:
          Args:
            city: 城市名称

        和 Sphinx 风格:
          :param city: 城市名称
        """
        descriptions: dict[str, str] = {}
        if not docstring:
            return descriptions

        args_match = re.search(r'Args?:\s*\n((?:\s+\w+.*\n?)+)', docstring, re.IGNORECASE)
        if args_match:
            for match in re.finditer(
                r'^\s+(\w+)(?:\s*\([^)]*\))?:\s*(.+?)(?=\n\s+\w+|\n\n|\Z)',
                args_match.group(1),
                re.MULTILINE | re.DOTALL,
            ):
                descriptions[match.group(1)] = match.group(2).strip().replace('\n', ' ')

        for match in re.finditer(r':param\s+(\w+):\s*(.+?)(?=:|$)', docstring, re.MULTILINE):
            descriptions[match.group(1)] = match.group(2).strip()

        return descriptions

    def _accepts(self, name: str) -> bool:
        sig = inspect.signature(self.func)
        if name in sig.parameters:
            return True
        return any(p.kind == inspect.Parameter.VAR_KEYWORD for p in sig.parameters.values())

    async def run_async(self, args: dict[str, Any], tool_context: Any) -> Any:
        """执行工具函数，丢弃函数不接受的参数"""
        call_args = {k: v for k, v in args.items() if k != TOOL_CONTEXT_PARAM and self._accepts(k)}
        if TOOL_CONTEXT_PARAM in inspect.signature(self.func).parameters:
            call_args[TOOL_CONTEXT_PARAM] = tool_context

        if inspect.iscoroutinefunction(self.func):
            return await self.func(**call_args)
        result = await asyncio.to_thread(self.func, **call_args)
        if inspect.isawaitable(result):
            result = await result
        return result


# 简短别名
Tool = FunctionTool


def tool(
    name: Optional[str] = None,
    description: Optional[str] = None,
    is_long_running: bool = False,
):
    """
    装饰器 - 将普通函数转换为 FunctionTool

    用法:
      @tool(description="搜索网页")
      def search(query: str) -> str:
        return f"搜索结果: {query}"
    """
    def decorator(func: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(
            name=name or func.__name__,
            description=description or inspect.getdoc(func) or f"Function {func.__name__}",
            func=func,
            is_long_running=is_long_running,
        )

    return decorator


def as_tool(obj: Union[BaseTool, Callable[..., Any]]) -> BaseTool:
    """把 BaseTool 或普通可调用对象统一转换为 BaseTool"""
    if isinstance(obj, BaseTool):
        return obj
    if callable(obj):
        return FunctionTool(
            name=obj.__name__,
            description=inspect.getdoc(obj) or f"Function {obj.__name__}",
            func=obj,
        )
    raise TypeError(f"Cannot use {obj!r} as a tool")
