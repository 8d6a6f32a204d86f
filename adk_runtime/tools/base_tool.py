"""BaseTool - 工具基类"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from ..models import LlmRequest
    from .tool_context import ToolContext


class BaseTool(BaseModel):
    """
    工具基类（使用 Pydantic）

    核心设计理念: 工具是带有描述和参数 schema 的函数，LLM 可以理解并调用

    parameters 格式:
        {
            'city': {'type': 'string', 'description': '城市名称'},
            'days': {'type': 'integer', 'default': 1},
            'unit': {'type': 'string', 'enum': ['c', 'f']},
        }
    没有 default 的参数视为必填。
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str = ''
    parameters: dict[str, Any] = Field(default_factory=dict)

    is_long_running: bool = False
    """长时间运行的工具：调用立即返回，结果稍后由外部提交"""

    async def run_async(self, args: dict[str, Any], tool_context: 'ToolContext') -> Any:
        """
        异步执行工具（子类必须覆盖）

        Args:
            args: 模型给出的参数
            tool_context: 工具上下文（state、artifact、actions）

        Returns:
            可 JSON 序列化的结果
        """
        raise NotImplementedError(f"Tool {self.name} must implement run_async")

    async def process_llm_request(self, tool_context: 'ToolContext', llm_request: 'LlmRequest') -> None:
        """
        在请求发送给模型前调整请求

        默认行为是把自己登记为可调用工具；预处理类工具可以覆盖为注入指令
        """
        llm_request.append_tools([self])

    # ==================== 声明 ====================

    def to_function_declaration(self) -> dict[str, Any]:
        """
        转换为函数声明格式（JSON Schema 参数）
        这是与 LLM 交互的关键 - 让 LLM 知道有哪些工具可用
        """
        properties = {}
        required = []
        for param_name, param_info in self.parameters.items():
            prop = {
                'type': param_info.get('type', 'string'),
                'description': param_info.get('description', f'参数 {param_name}'),
            }
            if 'enum' in param_info:
                prop['enum'] = param_info['enum']
            if prop['type'] == 'array':
                prop['items'] = param_info.get('items', {})
            properties[param_name] = prop
            if 'default' not in param_info:
                required.append(param_name)

        return {
            'name': self.name,
            'description': self.description,
            'parameters': {
                'type': 'object',
                'properties': properties,
                'required': required,
            },
        }

    def to_openai_tool(self) -> dict[str, Any]:
        """OpenAI function calling 格式"""
        return {'type': 'function', 'function': self.to_function_declaration()}
