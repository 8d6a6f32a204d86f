from __future__ import annotations

from typing import Optional

import pytest

from adk_runtime import AgentTool, FunctionTool, LlmAgent, Part, tool
from adk_runtime.tools import load_memory, preload_memory

from . import utils


def search_flights(origin: str, destination: str, max_stops: int = 1, flexible: Optional[bool] = None, tool_context=None):
    """Search for flights.

    Args:
        origin: departure airport code
        destination: arrival airport code
        max_stops: maximum number of stops
    """
    return []


# ==================== FunctionTool ====================

def test_function_tool_extracts_parameters():
    function_tool = FunctionTool(name='search_flights', func=search_flights)

    assert function_tool.parameters == {
        'origin': {'type': 'string', 'description': 'departure airport code'},
        'destination': {'type': 'string', 'description': 'arrival airport code'},
        'max_stops': {'type': 'integer', 'default': 1, 'description': 'maximum number of stops'},
        'flexible': {'type': 'boolean', 'default': None},
    }

    declaration = function_tool.to_function_declaration()
    assert declaration['parameters']['required'] == ['origin', 'destination']
    assert 'tool_context' not in declaration['parameters']['properties']


def test_tool_decorator():
    @tool(description='Add two numbers')
    def add(a: int, b: int) -> int:
        return a + b

    assert isinstance(add, FunctionTool)
    assert add.name == 'add'
    assert add.to_openai_tool()['function']['description'] == 'Add two numbers'


@pytest.mark.asyncio
async def test_function_tool_drops_unknown_args_and_awaits_coroutines():
    async def greet(name: str) -> str:
        return f'hi {name}'

    function_tool = FunctionTool(name='greet', func=greet)

    assert await function_tool.run_async({'name': 'Ada', 'unexpected': 1}, tool_context=None) == 'hi Ada'


# ==================== ToolContext ====================

@pytest.mark.asyncio
async def test_tool_context_state_is_committed_with_response_event():
    def count_visit(tool_context) -> int:
        visits = tool_context.state.get('visits', 0) + 1
        tool_context.state['visits'] = visits
        tool_context.state['temp:last_call'] = tool_context.function_call_id
        return visits

    llm = utils.MockLlm.create([
        utils.call_response('count_visit', call_id='call_1'),
        utils.call_response('count_visit', call_id='call_2'),
        'visited twice',
    ])
    runner = utils.TestInMemoryRunner(LlmAgent(name='root_agent', model=llm, tools=[count_visit]))

    events = await runner.send('visit')

    assert events[1].actions.state_delta['visits'] == 1
    assert events[3].actions.state_delta['visits'] == 2
    session = await runner.current_session()
    assert session.state['visits'] == 2
    assert 'temp:last_call' not in session.state


@pytest.mark.asyncio
async def test_tool_saves_artifact_and_instruction_reads_it():
    async def write_notes(text: str, tool_context) -> str:
        version = await tool_context.save_artifact('notes.txt', Part.from_text(text))
        return f'saved version {version}'

    async def list_files(tool_context) -> list:
        return await tool_context.list_artifacts()

    writer_llm = utils.MockLlm.create([
        utils.call_response('write_notes', {'text': 'buy milk'}),
        utils.call_response('list_files'),
        'saved',
        'I read your notes',
    ])
    agent = LlmAgent(
        name='root_agent',
        model=writer_llm,
        instruction='Notes: {artifact.notes.txt?}',
        tools=[write_notes, list_files],
    )
    runner = utils.TestInMemoryRunner(agent)

    events = await runner.send('remember to buy milk')

    assert events[1].actions.artifact_delta == {'notes.txt': 0}
    assert utils.simplify_event(events[3]) == ('root_agent', ('response', 'list_files', {'result': ['notes.txt']}))
    assert writer_llm.requests[0].system_instruction == 'Notes: '

    await runner.send('what are my notes?')
    assert writer_llm.requests[-1].system_instruction == 'Notes: buy milk'


# ==================== AgentTool ====================

@pytest.mark.asyncio
async def test_agent_tool_returns_sub_agent_text_and_state():
    summarizer_llm = utils.MockLlm.create(['short summary'])
    summarizer = LlmAgent(
        name='summarizer',
        description='Summarizes text',
        model=summarizer_llm,
        output_key='summary',
    )
    outer_llm = utils.MockLlm.create([
        utils.call_response('summarizer', {'request': 'a very long text'}),
        'Here is the summary',
    ])
    agent = LlmAgent(name='root_agent', model=outer_llm, tools=[AgentTool(agent=summarizer)])
    runner = utils.TestInMemoryRunner(agent)

    events = await runner.send('summarize this')

    assert utils.simplify_event(events[1]) == (
        'root_agent', ('response', 'summarizer', {'result': 'short summary'})
    )
    assert summarizer_llm.requests[0].messages == [{'role': 'user', 'content': 'a very long text'}]
    session = await runner.current_session()
    assert session.state['summary'] == 'short summary'

    declaration = outer_llm.requests[0].tools[0]['function']
    assert declaration['name'] == 'summarizer'
    assert declaration['description'] == 'Summarizes text'


# ==================== 长时间运行的工具 ====================

@pytest.mark.asyncio
async def test_long_running_tool_ends_turn_without_response():
    @tool(is_long_running=True)
    def start_job(job: str) -> None:
        return None

    llm = utils.MockLlm.create([utils.call_response('start_job', {'job': 'export'})])
    runner = utils.TestInMemoryRunner(LlmAgent(name='root_agent', model=llm, tools=[start_job]))

    events = await runner.send('export everything')

    assert len(events) == 1
    call_id = events[0].get_function_calls()[0].id
    assert events[0].long_running_tool_ids == {call_id}
    assert events[0].is_final_response()


# ==================== 记忆工具 ====================

@pytest.mark.asyncio
async def test_preload_memory_injects_past_conversations():
    llm = utils.MockLlm.create(['noted', 'Your favorite color is blue'])
    runner = utils.TestInMemoryRunner(LlmAgent(name='root_agent', model=llm, tools=[preload_memory]))

    await runner.send('My favorite color is blue')
    await runner.add_session_to_memory(await runner.current_session())
    await runner.send('What is my favorite color?')

    assert '<PAST_CONVERSATIONS>' not in llm.requests[0].system_instruction
    assert 'My favorite color is blue' in llm.requests[1].system_instruction
    assert llm.requests[1].tools == []


@pytest.mark.asyncio
async def test_load_memory_tool():
    llm = utils.MockLlm.create([
        'ok',
        utils.call_response('load_memory', {'query': 'color'}),
        'blue',
    ])
    runner = utils.TestInMemoryRunner(LlmAgent(name='root_agent', model=llm, tools=[load_memory]))

    await runner.send('favorite color: blue')
    await runner.add_session_to_memory(await runner.current_session())
    events = await runner.send('what color?')

    _, (_, name, payload) = utils.simplify_event(events[1])
    assert name == 'load_memory'
    assert [m['content'] for m in payload['memories']] == ['favorite color: blue']
