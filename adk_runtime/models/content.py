"""消息内容的标准化格式 - Event 和 LLM 之间共享的 parts 结构"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class FunctionCall:
    """
    工具/函数调用信息

    id 用于把调用与对应的 FunctionResponse 关联起来
    """
    id: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'args': self.args}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FunctionCall:
        return cls(id=data.get('id', ''), name=data['name'], args=data.get('args') or {})


@dataclass
class FunctionResponse:
    """工具执行结果，id 与触发它的 FunctionCall 相同"""
    id: str
    name: str
    response: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'response': self.response}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FunctionResponse:
        return cls(id=data.get('id', ''), name=data['name'], response=data.get('response') or {})


@dataclass
class Blob:
    """二进制数据（artifact 等）"""
    mime_type: str
    data: bytes

    def to_dict(self) -> dict[str, Any]:
        return {'mime_type': self.mime_type, 'data': base64.b64encode(self.data).decode('ascii')}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Blob:
        return cls(mime_type=data['mime_type'], data=base64.b64decode(data['data']))


@dataclass
class Part:
    """内容片段：文本、二进制、函数调用、函数响应四者之一"""
    text: Optional[str] = None
    inline_data: Optional[Blob] = None
    function_call: Optional[FunctionCall] = None
    function_response: Optional[FunctionResponse] = None

    @classmethod
    def from_text(cls, text: str) -> Part:
        return cls(text=text)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> Part:
        return cls(inline_data=Blob(mime_type=mime_type, data=data))

    def to_dict(self) -> dict[str, Any]:
        if self.function_call is not None:
            return {'function_call': self.function_call.to_dict()}
        if self.function_response is not None:
            return {'function_response': self.function_response.to_dict()}
        if self.inline_data is not None:
            return {'inline_data': self.inline_data.to_dict()}
        return {'text': self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Part:
        if 'function_call' in data:
            return cls(function_call=FunctionCall.from_dict(data['function_call']))
        if 'function_response' in data:
            return cls(function_response=FunctionResponse.from_dict(data['function_response']))
        if 'inline_data' in data:
            return cls(inline_data=Blob.from_dict(data['inline_data']))
        return cls(text=data.get('text'))


@dataclass
class Content:
    """
    一条消息的内容

    Attributes:
        role: 'user' 或 'model'
        parts: 内容片段列表
    """
    role: str = 'user'
    parts: list[Part] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str, role: str = 'user') -> Content:
        return cls(role=role, parts=[Part(text=text)])

    @property
    def text(self) -> str:
        """拼接所有文本片段"""
        return ''.join(p.text for p in self.parts if p.text)

    def to_dict(self) -> dict[str, Any]:
        return {'role': self.role, 'parts': [p.to_dict() for p in self.parts]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Content:
        return cls(
            role=data.get('role', 'user'),
            parts=[Part.from_dict(p) for p in data.get('parts', [])],
        )
