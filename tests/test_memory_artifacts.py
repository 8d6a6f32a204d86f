from __future__ import annotations

import pytest

from adk_runtime import Content, Event, Part, Session


def _session(session_id: str, *texts: tuple[str, str], user_id: str = 'u1') -> Session:
    return Session(
        app_name='app',
        user_id=user_id,
        id=session_id,
        events=[Event(author=author, content=Content.from_text(text)) for author, text in texts],
    )


# ==================== Memory ====================

@pytest.mark.asyncio
async def test_memory_search_across_sessions(memory_service):
    await memory_service.add_session_to_memory(_session('s1', ('user', 'I live in Berlin')))
    await memory_service.add_session_to_memory(_session('s2', ('user', 'I work as a Berlin tour guide')))

    result = await memory_service.search_memory(app_name='app', user_id='u1', query='berlin guide')

    assert [e.content for e in result.entries] == ['I work as a Berlin tour guide', 'I live in Berlin']
    assert result.total_count == 2
    assert result.entries[0].session_id == 's2'


@pytest.mark.asyncio
async def test_memory_is_scoped_per_user(memory_service):
    await memory_service.add_session_to_memory(_session('s1', ('user', 'secret plans'), user_id='alice'))

    result = await memory_service.search_memory(app_name='app', user_id='bob', query='secret')

    assert len(result) == 0


@pytest.mark.asyncio
async def test_re_adding_session_replaces_entries(memory_service):
    await memory_service.add_session_to_memory(_session('s1', ('user', 'apples')))
    await memory_service.add_session_to_memory(_session('s1', ('user', 'apples'), ('helper', 'more apples')))

    result = await memory_service.search_memory(app_name='app', user_id='u1', query='apples')

    assert len(result) == 2


@pytest.mark.asyncio
async def test_memory_context_string(memory_service):
    await memory_service.add_session_to_memory(_session('s1', ('user', 'tea with milk')))

    result = await memory_service.search_memory(app_name='app', user_id='u1', query='tea')
    text = result.to_context_string()

    assert text.startswith('[Relevant Memories]')
    assert '(user): tea with milk' in text


@pytest.mark.asyncio
async def test_memory_search_with_empty_query(memory_service):
    await memory_service.add_session_to_memory(_session('s1', ('user', 'anything')))

    result = await memory_service.search_memory(app_name='app', user_id='u1', query='  ?! ')

    assert result.entries == []


# ==================== Artifacts ====================

@pytest.mark.asyncio
async def test_artifact_versions(artifact_service):
    keys = dict(app_name='app', user_id='u1', session_id='s1', filename='report.txt')

    assert await artifact_service.save_artifact(artifact=Part.from_text('v0'), **keys) == 0
    assert await artifact_service.save_artifact(artifact=Part.from_text('v1'), **keys) == 1

    assert (await artifact_service.load_artifact(**keys)).text == 'v1'
    assert (await artifact_service.load_artifact(version=0, **keys)).text == 'v0'
    assert await artifact_service.load_artifact(version=5, **keys) is None
    assert await artifact_service.list_versions(**keys) == [0, 1]


@pytest.mark.asyncio
async def test_user_scoped_artifacts_visible_across_sessions(artifact_service):
    await artifact_service.save_artifact(
        app_name='app', user_id='u1', session_id='s1', filename='user:avatar.png',
        artifact=Part.from_bytes(b'\x89PNG', 'image/png'),
    )
    await artifact_service.save_artifact(
        app_name='app', user_id='u1', session_id='s1', filename='draft.txt',
        artifact=Part.from_text('draft'),
    )

    assert await artifact_service.list_artifact_keys(app_name='app', user_id='u1', session_id='s2') == [
        'user:avatar.png'
    ]
    loaded = await artifact_service.load_artifact(
        app_name='app', user_id='u1', session_id='s2', filename='user:avatar.png'
    )
    assert loaded.inline_data.mime_type == 'image/png'
    assert await artifact_service.list_artifact_keys(app_name='app', user_id='u1', session_id='s1') == [
        'draft.txt', 'user:avatar.png'
    ]


@pytest.mark.asyncio
async def test_delete_artifact(artifact_service):
    keys = dict(app_name='app', user_id='u1', session_id='s1', filename='tmp.txt')
    await artifact_service.save_artifact(artifact=Part.from_text('x'), **keys)

    await artifact_service.delete_artifact(**keys)

    assert await artifact_service.load_artifact(**keys) is None
    assert await artifact_service.list_versions(**keys) == []
