from __future__ import annotations

import pytest

from adk_runtime import (
    Config,
    LlmAgent,
    ModelTransportError,
    Runner,
    SequentialAgent,
    SessionNotFoundError,
)
from adk_runtime.agents import RunConfig, StreamingMode
from adk_runtime.config import RunnerConfig

from . import utils


@pytest.mark.asyncio
async def test_missing_session_raises(session_service):
    agent = LlmAgent(name='root_agent', model=utils.MockLlm.create(['hello']))
    runner = Runner(app_name='app', agent=agent, session_service=session_service)

    with pytest.raises(SessionNotFoundError):
        await utils.run_turn(runner, 'u1', 'missing', 'hi')


@pytest.mark.asyncio
async def test_user_and_agent_events_are_persisted(session_service):
    agent = LlmAgent(name='root_agent', model=utils.MockLlm.create(['hello']))
    runner = Runner(app_name='app', agent=agent, session_service=session_service)
    session = await session_service.create_session(app_name='app', user_id='u1')

    events = await utils.run_turn(runner, 'u1', session.id, 'hi')

    assert utils.simplify_events(events) == [('root_agent', 'hello')]
    loaded = await session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    assert [(e.author, e.text) for e in loaded.events] == [('user', 'hi'), ('root_agent', 'hello')]
    assert loaded.events[0].invocation_id == loaded.events[1].invocation_id


@pytest.mark.asyncio
async def test_history_is_sent_on_next_turn(session_service):
    llm = utils.MockLlm.create(['first answer', 'second answer'])
    agent = LlmAgent(name='root_agent', model=llm)
    runner = Runner(app_name='app', agent=agent, session_service=session_service)
    session = await session_service.create_session(app_name='app', user_id='u1')

    await utils.run_turn(runner, 'u1', session.id, 'one')
    await utils.run_turn(runner, 'u1', session.id, 'two')

    assert llm.requests[1].messages == [
        {'role': 'user', 'content': 'one'},
        {'role': 'assistant', 'content': 'first answer'},
        {'role': 'user', 'content': 'two'},
    ]


@pytest.mark.asyncio
async def test_streaming_yields_partials_before_final(session_service):
    llm = utils.MockLlm.create(['hello world'], chunk_size=5)
    agent = LlmAgent(name='root_agent', model=llm)
    runner = Runner(app_name='app', agent=agent, session_service=session_service)
    session = await session_service.create_session(app_name='app', user_id='u1')

    events = await utils.run_turn(
        runner, 'u1', session.id, 'hi',
        run_config=RunConfig(streaming_mode=StreamingMode.SSE),
    )

    partials = [e for e in events if e.partial]
    assert [e.text for e in partials] == ['hello', 'hello worl', 'hello world']
    for previous, current in zip(partials, partials[1:]):
        assert current.text.startswith(previous.text)
    assert not events[-1].partial
    assert events[-1].text == 'hello world'
    assert all(events.index(p) < len(events) - 1 for p in partials)

    loaded = await session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    assert [e.text for e in loaded.events] == ['hi', 'hello world']


@pytest.mark.asyncio
async def test_streaming_default_comes_from_config(session_service):
    llm = utils.MockLlm.create(['abcdef'], chunk_size=2)
    agent = LlmAgent(name='root_agent', model=llm)
    config = Config(runner=RunnerConfig(streaming=True))
    runner = Runner(app_name='app', agent=agent, session_service=session_service, config=config)
    session = await session_service.create_session(app_name='app', user_id='u1')

    events = await utils.run_turn(runner, 'u1', session.id, 'hi')

    assert len([e for e in events if e.partial]) == 3
    assert llm.requests[0].stream is True


@pytest.mark.asyncio
async def test_model_transport_error_propagates_and_keeps_persisted_events(session_service):
    class FailingLlm(utils.MockLlm):
        async def generate_async(self, request, stream=False):
            raise ModelTransportError('connection reset', model=self.model)
            yield

    agent = LlmAgent(name='root_agent', model=FailingLlm())
    runner = Runner(app_name='app', agent=agent, session_service=session_service)
    session = await session_service.create_session(app_name='app', user_id='u1')

    with pytest.raises(ModelTransportError):
        await utils.run_turn(runner, 'u1', session.id, 'hi')

    loaded = await session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    assert [e.author for e in loaded.events] == ['user']


@pytest.mark.asyncio
async def test_closing_stream_stops_further_model_calls(session_service):
    first = LlmAgent(name='first', model=utils.MockLlm.create(['one']))
    second_llm = utils.MockLlm.create(['two'])
    second = LlmAgent(name='second', model=second_llm)
    pipeline = SequentialAgent(name='pipeline', sub_agents=[first, second])
    runner = Runner(app_name='app', agent=pipeline, session_service=session_service)
    session = await session_service.create_session(app_name='app', user_id='u1')

    agen = runner.run_async(user_id='u1', session_id=session.id, new_message='hi')
    event = await agen.__anext__()
    assert event.author == 'first'
    await agen.aclose()

    assert second_llm.requests == []
    loaded = await session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    assert [e.author for e in loaded.events] == ['user', 'first']


@pytest.mark.asyncio
async def test_max_llm_calls_limit(session_service):
    from adk_runtime import LlmCallsLimitExceededError

    def echo(x: int) -> int:
        return x

    llm = utils.MockLlm.create([utils.call_response('echo', {'x': i}) for i in range(5)])
    agent = LlmAgent(name='root_agent', model=llm, tools=[echo])
    runner = Runner(app_name='app', agent=agent, session_service=session_service)
    session = await session_service.create_session(app_name='app', user_id='u1')

    with pytest.raises(LlmCallsLimitExceededError):
        await utils.run_turn(runner, 'u1', session.id, 'hi', run_config=RunConfig(max_llm_calls=2))
    assert len(llm.requests) == 2


def test_sync_run_returns_events(session_service):
    import asyncio

    agent = LlmAgent(name='root_agent', model=utils.MockLlm.create(['hello']))
    runner = Runner(app_name='app', agent=agent, session_service=session_service)
    session = asyncio.run(session_service.create_session(app_name='app', user_id='u1'))

    events = runner.run('u1', session.id, 'hi')

    assert utils.simplify_events(events) == [('root_agent', 'hello')]


@pytest.mark.asyncio
async def test_add_session_to_memory(session_service, memory_service):
    agent = LlmAgent(name='root_agent', model=utils.MockLlm.create(['Paris is the capital']))
    runner = Runner(
        app_name='app', agent=agent, session_service=session_service, memory_service=memory_service,
    )
    session = await session_service.create_session(app_name='app', user_id='u1')
    await utils.run_turn(runner, 'u1', session.id, 'capital of France?')

    loaded = await session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    ids = await runner.add_session_to_memory(loaded)

    assert len(ids) == 2
    result = await memory_service.search_memory(app_name='app', user_id='u1', query='Paris')
    assert result.entries[0].author == 'root_agent'


@pytest.mark.asyncio
async def test_add_session_to_memory_requires_service(session_service):
    agent = LlmAgent(name='root_agent', model=utils.MockLlm.create([]))
    runner = Runner(app_name='app', agent=agent, session_service=session_service)
    session = await session_service.create_session(app_name='app', user_id='u1')

    with pytest.raises(ValueError):
        await runner.add_session_to_memory(session)
