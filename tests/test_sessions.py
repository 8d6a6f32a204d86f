from __future__ import annotations

import asyncio

import pytest

from adk_runtime import Content, Event, EventActions, State
from adk_runtime.sessions import GetSessionConfig


def _event(text: str = 'hi', state_delta: dict | None = None, **kwargs) -> Event:
    return Event(
        author=kwargs.pop('author', 'user'),
        content=Content.from_text(text),
        actions=EventActions(state_delta=state_delta or {}),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_create_append_get(any_session_service):
    session = await any_session_service.create_session(app_name='app', user_id='u1')
    await any_session_service.append_event(session, _event('hi', {'counter': 1}))

    loaded = await any_session_service.get_session(app_name='app', user_id='u1', session_id=session.id)

    assert loaded.state['counter'] == 1
    assert len(loaded.events) == 1
    assert loaded.events[0].text == 'hi'


@pytest.mark.asyncio
async def test_get_unknown_session_returns_none(any_session_service):
    assert await any_session_service.get_session(app_name='app', user_id='u1', session_id='missing') is None


@pytest.mark.asyncio
async def test_append_count_and_update_time_monotonic(any_session_service):
    session = await any_session_service.create_session(app_name='app', user_id='u1')
    times = [session.last_update_time]

    for i in range(5):
        await any_session_service.append_event(session, _event(f'message {i}'))
        times.append(session.last_update_time)

    assert len(session.events) == 5
    assert all(later > earlier for earlier, later in zip(times, times[1:]))

    loaded = await any_session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    assert len(loaded.events) == 5
    assert loaded.last_update_time >= times[0]


@pytest.mark.asyncio
async def test_partial_events_are_not_stored(any_session_service):
    session = await any_session_service.create_session(app_name='app', user_id='u1')

    partial = _event('chunk', partial=True)
    returned = await any_session_service.append_event(session, partial)

    assert returned is partial
    assert session.events == []
    loaded = await any_session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    assert loaded.events == []


@pytest.mark.asyncio
async def test_prefixed_state_round_trip(any_session_service):
    session = await any_session_service.create_session(app_name='app', user_id='u1')
    await any_session_service.append_event(session, _event(state_delta={'app:counter': 1}))

    loaded = await any_session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    state = State(loaded.state, {})
    assert state.resolve('counter') == 1

    # 会话级的值比 app 级更具体
    await any_session_service.append_event(session, _event(state_delta={'counter': 2}))
    loaded = await any_session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    assert State(loaded.state, {}).resolve('counter') == 2


@pytest.mark.asyncio
async def test_app_and_user_state_shared_across_sessions(any_session_service):
    first = await any_session_service.create_session(app_name='app', user_id='u1')
    await any_session_service.append_event(
        first, _event(state_delta={'app:theme': 'dark', 'user:lang': 'zh', 'draft': 'x'})
    )

    same_user = await any_session_service.create_session(app_name='app', user_id='u1')
    other_user = await any_session_service.create_session(app_name='app', user_id='u2')

    assert same_user.state['app:theme'] == 'dark'
    assert same_user.state['user:lang'] == 'zh'
    assert 'draft' not in same_user.state

    assert other_user.state['app:theme'] == 'dark'
    assert 'user:lang' not in other_user.state


@pytest.mark.asyncio
async def test_temp_state_is_not_persisted(any_session_service):
    session = await any_session_service.create_session(app_name='app', user_id='u1')
    event = _event(state_delta={'temp:scratch': 'x', 'kept': 'y'})
    await any_session_service.append_event(session, event)

    # 进行中的 Session 对象可以看到 temp 值
    assert session.state['temp:scratch'] == 'x'

    loaded = await any_session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    assert 'temp:scratch' not in loaded.state
    assert loaded.state['kept'] == 'y'
    assert 'temp:scratch' not in loaded.events[0].actions.state_delta


@pytest.mark.asyncio
async def test_create_session_with_existing_id_replaces(any_session_service):
    session = await any_session_service.create_session(
        app_name='app', user_id='u1', session_id='s1', state={'a': 1}
    )
    await any_session_service.append_event(session, _event())

    replaced = await any_session_service.create_session(
        app_name='app', user_id='u1', session_id='s1', state={'b': 2}
    )

    loaded = await any_session_service.get_session(app_name='app', user_id='u1', session_id='s1')
    assert replaced.id == 's1'
    assert loaded.events == []
    assert 'a' not in loaded.state
    assert loaded.state['b'] == 2
    listed = await any_session_service.list_sessions(app_name='app', user_id='u1')
    assert [s.id for s in listed.sessions] == ['s1']


@pytest.mark.asyncio
async def test_list_sessions_most_recent_first(any_session_service):
    older = await any_session_service.create_session(app_name='app', user_id='u1')
    newer = await any_session_service.create_session(app_name='app', user_id='u1')
    await any_session_service.append_event(older, _event())

    listed = await any_session_service.list_sessions(app_name='app', user_id='u1')

    assert [s.id for s in listed.sessions] == [older.id, newer.id]
    assert all(s.events == [] for s in listed.sessions)


@pytest.mark.asyncio
async def test_delete_session(any_session_service):
    session = await any_session_service.create_session(app_name='app', user_id='u1')
    await any_session_service.delete_session(app_name='app', user_id='u1', session_id=session.id)

    assert await any_session_service.get_session(app_name='app', user_id='u1', session_id=session.id) is None
    listed = await any_session_service.list_sessions(app_name='app', user_id='u1')
    assert listed.sessions == []


@pytest.mark.asyncio
async def test_get_session_config_filters_events(any_session_service):
    session = await any_session_service.create_session(app_name='app', user_id='u1')
    for i in range(4):
        await any_session_service.append_event(session, _event(f'm{i}'))

    loaded = await any_session_service.get_session(
        app_name='app', user_id='u1', session_id=session.id,
        config=GetSessionConfig(num_recent_events=2),
    )
    assert [e.text for e in loaded.events] == ['m2', 'm3']


@pytest.mark.asyncio
async def test_concurrent_appends_are_serialized(any_session_service):
    session = await any_session_service.create_session(app_name='app', user_id='u1')

    await asyncio.gather(*(
        any_session_service.append_event(session, _event(f'm{i}', {f'k{i}': i}))
        for i in range(20)
    ))

    loaded = await any_session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    assert len(loaded.events) == 20
    assert all(loaded.state[f'k{i}'] == i for i in range(20))


@pytest.mark.asyncio
async def test_in_memory_get_returns_copies(session_service):
    session = await session_service.create_session(app_name='app', user_id='u1')
    loaded = await session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    loaded.state['mutated'] = True
    loaded.events.append(_event())

    again = await session_service.get_session(app_name='app', user_id='u1', session_id=session.id)
    assert 'mutated' not in again.state
    assert again.events == []


@pytest.mark.asyncio
async def test_sqlite_events_survive_new_service_instance(sqlite_session_service, tmp_path):
    from adk_runtime.sessions import SqliteSessionService

    session = await sqlite_session_service.create_session(app_name='app', user_id='u1')
    await sqlite_session_service.append_event(session, _event('persisted', {'n': 1}))

    reopened = SqliteSessionService(db_path=tmp_path / 'sessions.db')
    loaded = await reopened.get_session(app_name='app', user_id='u1', session_id=session.id)

    assert loaded.events[0].text == 'persisted'
    assert loaded.state['n'] == 1
