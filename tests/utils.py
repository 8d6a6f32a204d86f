"""测试用的脚本化 LLM 与辅助函数"""

from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Optional, Union

from pydantic import Field, PrivateAttr

from adk_runtime import Event, InMemoryRunner, LlmRequest, LlmResponse
from adk_runtime.agents import BaseAgent, RunConfig
from adk_runtime.models import BaseLlm, FunctionCall

MockResponse = Union[str, LlmResponse]


def text_response(text: str) -> LlmResponse:
    return LlmResponse(content=text, finish_reason='stop')


def call_response(name: str, args: Optional[dict[str, Any]] = None, call_id: str = '') -> LlmResponse:
    return LlmResponse(
        function_calls=[FunctionCall(id=call_id, name=name, args=args or {})],
        finish_reason='tool_calls',
    )


def _as_response(response: MockResponse) -> LlmResponse:
    if isinstance(response, LlmResponse):
        return response
    return text_response(response)


class MockLlm(BaseLlm):
    """
    按顺序回放预设响应的 LLM

    - requests 记录收到的每个请求
    - responder 不为空时改为按请求动态生成响应（用于确定性桩模型）
    - 流式模式下按 chunk_size 切分，每个 partial 响应携带到目前为止的累积文本
    """

    model: str = 'mock-model'
    responses: list[Any] = Field(default_factory=list)
    responder: Optional[Callable[..., Any]] = None
    chunk_size: int = 0
    requests: list[Any] = Field(default_factory=list)

    _index: int = PrivateAttr(default=0)

    @classmethod
    def create(cls, responses: Optional[list[MockResponse]] = None, **kwargs: Any) -> 'MockLlm':
        return cls(responses=list(responses or []), **kwargs)

    async def generate_async(
        self,
        request: LlmRequest,
        stream: bool = False,
    ) -> AsyncIterator[LlmResponse]:
        self.requests.append(request)

        if self.responder is not None:
            response = _as_response(self.responder(request))
        else:
            if self._index >= len(self.responses):
                raise AssertionError(f"MockLlm ran out of responses after {self._index} calls")
            response = _as_response(self.responses[self._index])
            self._index += 1

        if stream and self.chunk_size and response.content:
            text = response.content
            for i, start in enumerate(range(0, len(text), self.chunk_size)):
                end = start + self.chunk_size
                yield LlmResponse.create_delta(text[start:end], text[:end], chunk_index=i)
        yield response


async def collect(agen) -> list[Event]:
    return [event async for event in agen]


async def run_turn(
    runner,
    user_id: str,
    session_id: str,
    message: str,
    run_config: Optional[RunConfig] = None,
) -> list[Event]:
    return await collect(runner.run_async(
        user_id=user_id,
        session_id=session_id,
        new_message=message,
        run_config=run_config,
    ))


def simplify_event(event: Event) -> tuple[str, Any]:
    """(author, 文本 | ('call', name) | ('response', name, payload))"""
    calls = event.get_function_calls()
    if calls:
        return event.author, ('call', calls[0].name)
    responses = event.get_function_responses()
    if responses:
        return event.author, ('response', responses[0].name, responses[0].response)
    return event.author, event.text


def simplify_events(events: list[Event]) -> list[tuple[str, Any]]:
    return [simplify_event(e) for e in events if not e.partial]


class TestInMemoryRunner(InMemoryRunner):
    """带一个固定会话的 InMemoryRunner"""

    __test__ = False

    def __init__(self, agent: BaseAgent, **kwargs: Any):
        super().__init__(agent, app_name='test_app', **kwargs)
        self.user_id = 'test_user'
        self.session_id: Optional[str] = None

    async def ensure_session(self, state: Optional[dict[str, Any]] = None) -> str:
        if self.session_id is None:
            session = await self.session_service.create_session(
                app_name=self.app_name,
                user_id=self.user_id,
                state=state,
            )
            self.session_id = session.id
        return self.session_id

    async def send(self, message: str, run_config: Optional[RunConfig] = None) -> list[Event]:
        await self.ensure_session()
        return await run_turn(self, self.user_id, self.session_id, message, run_config)

    async def current_session(self):
        return await self.session_service.get_session(
            app_name=self.app_name,
            user_id=self.user_id,
            session_id=self.session_id,
        )
