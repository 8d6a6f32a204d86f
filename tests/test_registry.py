from __future__ import annotations

import pytest

from adk_runtime import (
    AgentBuilder,
    AgentNotFoundError,
    AgentRegistry,
    BuilderSource,
    Content,
    Event,
    FactorySource,
    InstanceSource,
    LlmAgent,
    SessionNotFoundError,
)

from . import utils

APP = 'adk-server'


def _echo_agent(name: str = 'echo') -> LlmAgent:
    model = utils.MockLlm.create(responder=lambda request: f"echo: {request.messages[-1]['content']}")
    return LlmAgent(name=name, model=model)


@pytest.fixture
def registry(session_service):
    return AgentRegistry(session_service=session_service)


@pytest.mark.asyncio
async def test_start_with_no_sessions_creates_exactly_one(registry, session_service):
    registry.register('echo', InstanceSource(_echo_agent()))

    loaded = await registry.start('echo')

    listed = await session_service.list_sessions(app_name=APP, user_id='user_echo')
    assert [s.id for s in listed.sessions] == [loaded.session_id]
    assert registry.is_running('echo')


@pytest.mark.asyncio
async def test_start_reuses_most_recently_updated_session(registry, session_service):
    older = await session_service.create_session(app_name=APP, user_id='user_echo')
    await session_service.create_session(app_name=APP, user_id='user_echo')
    await session_service.append_event(
        older, Event(author='user', content=Content.from_text('bump'))
    )
    registry.register('echo', InstanceSource(_echo_agent()))

    loaded = await registry.start('echo')

    assert loaded.session_id == older.id
    listed = await session_service.list_sessions(app_name=APP, user_id='user_echo')
    assert len(listed.sessions) == 2


@pytest.mark.asyncio
async def test_start_is_idempotent(registry):
    registry.register('echo', InstanceSource(_echo_agent()))

    first = await registry.start('echo')
    second = await registry.start('echo')

    assert first is second


@pytest.mark.asyncio
async def test_send_message(registry, session_service):
    registry.register('echo', InstanceSource(_echo_agent()))

    reply = await registry.send_message('echo', 'hello')

    assert reply == 'echo: hello'
    loaded = registry.get_loaded('echo')
    session = await session_service.get_session(
        app_name=APP, user_id=loaded.user_id, session_id=loaded.session_id
    )
    assert [e.text for e in session.events] == ['hello', 'echo: hello']


@pytest.mark.asyncio
async def test_factory_source_sync_and_async(registry):
    calls = []

    def make_sync():
        calls.append('sync')
        return _echo_agent('sync_agent')

    async def make_async():
        calls.append('async')
        return _echo_agent('async_agent')

    registry.register('sync', FactorySource(make_sync))
    registry.register('async', FactorySource(make_async))

    assert (await registry.start('sync')).agent.name == 'sync_agent'
    assert (await registry.start('async')).agent.name == 'async_agent'
    await registry.start('sync')
    assert calls == ['sync', 'async']


@pytest.mark.asyncio
async def test_factory_must_return_agent(registry):
    registry.register('bad', FactorySource(lambda: 'not an agent'))

    with pytest.raises(TypeError):
        await registry.start('bad')


@pytest.mark.asyncio
async def test_builder_source(registry):
    builder = AgentBuilder.create('built').with_model(_echo_agent().model)
    registry.register('built', BuilderSource(builder))

    loaded = await registry.start('built')

    assert loaded.agent is builder.build_agent()
    assert await registry.send_message('built', 'hi') == 'echo: hi'


@pytest.mark.asyncio
async def test_unknown_agent(registry):
    with pytest.raises(AgentNotFoundError):
        await registry.start('missing')
    with pytest.raises(AgentNotFoundError):
        registry.get_loaded('missing')


def test_register_rejects_unknown_source(registry):
    with pytest.raises(TypeError):
        registry.register('raw', _echo_agent())


@pytest.mark.asyncio
async def test_register_same_name_stops_running_agent(registry):
    registry.register('echo', InstanceSource(_echo_agent()))
    await registry.start('echo')

    registry.register('echo', InstanceSource(_echo_agent('replacement')))

    assert not registry.is_running('echo')
    assert (await registry.start('echo')).agent.name == 'replacement'


@pytest.mark.asyncio
async def test_create_and_switch_sessions(registry):
    registry.register('echo', InstanceSource(_echo_agent()))
    original = await registry.start('echo')
    first_session_id = original.session_id

    new_session = await registry.create_session('echo', state={'topic': 'news'})
    assert registry.get_loaded('echo').session_id == new_session.id
    assert len(await registry.list_sessions('echo')) == 2

    await registry.switch_session('echo', first_session_id)
    assert registry.get_loaded('echo').session_id == first_session_id

    with pytest.raises(SessionNotFoundError):
        await registry.switch_session('echo', 'missing')


@pytest.mark.asyncio
async def test_unregister_and_stop_all(registry):
    registry.register('a', InstanceSource(_echo_agent('a')))
    registry.register('b', InstanceSource(_echo_agent('b')))
    await registry.start('a')
    await registry.start('b')

    registry.unregister('a')
    assert registry.list_agents() == ['b']

    registry.stop_all()
    assert not registry.is_running('b')


def test_registry_uses_configured_session_backend(isolated_config, tmp_path):
    from adk_runtime.sessions import SqliteSessionService

    isolated_config.session.backend = 'sqlite'
    isolated_config.session.db_path = str(tmp_path / 'registry.db')

    registry = AgentRegistry()

    assert isinstance(registry.session_service, SqliteSessionService)
