from __future__ import annotations

import pytest

from adk_runtime import (
    AgentBuilder,
    InMemorySessionService,
    InvalidAgentConfigurationError,
    LangGraphAgent,
    LangGraphNode,
    LlmAgent,
    LoopAgent,
    ParallelAgent,
    SequentialAgent,
)

from . import utils


def _echo_llm() -> utils.MockLlm:
    """确定性桩模型：回复最后一条用户消息"""
    return utils.MockLlm.create(responder=lambda request: f"echo: {request.messages[-1]['content']}")


@pytest.mark.asyncio
async def test_ask_returns_joined_text():
    answer = await AgentBuilder.create('assistant').with_model(_echo_llm()).ask('hello')

    assert answer == 'echo: hello'


@pytest.mark.asyncio
async def test_ask_is_repeatable_with_deterministic_model():
    builder = AgentBuilder.create('assistant').with_model(_echo_llm())

    first = await builder.ask('same question')
    second = await builder.ask('same question')

    assert first == second == 'echo: same question'


@pytest.mark.asyncio
async def test_build_reuses_agent_but_creates_new_session():
    builder = AgentBuilder.create('assistant').with_model(_echo_llm())

    first = await builder.build()
    second = await builder.build()

    assert first.agent is second.agent
    assert first.session.id != second.session.id
    assert first.session.user_id == 'user-assistant'
    assert first.session.app_name == 'session-assistant'


@pytest.mark.asyncio
async def test_with_session_uses_given_service_and_state():
    service = InMemorySessionService()
    llm = utils.MockLlm.create(['Hi Ada'])
    built = await (
        AgentBuilder.create('greeter')
        .with_model(llm)
        .with_instruction('Greet {name}')
        .with_output_key('greeting')
        .with_session(service, user_id='u1', app_name='demo', session_id='s1', state={'name': 'Ada'})
        .build()
    )

    reply = await built.runner.ask('hi')

    assert reply == 'Hi Ada'
    assert llm.requests[0].system_instruction == 'Greet Ada'
    stored = await service.get_session(app_name='demo', user_id='u1', session_id='s1')
    assert stored.state['greeting'] == 'Hi Ada'


@pytest.mark.asyncio
async def test_with_tools_accumulates():
    def first_tool() -> str:
        return 'a'

    def second_tool() -> str:
        return 'b'

    agent = (
        AgentBuilder.create('assistant')
        .with_model(_echo_llm())
        .with_tools(first_tool)
        .with_tools(second_tool)
        .build_agent()
    )

    assert [t.name for t in agent.canonical_tools] == ['first_tool', 'second_tool']


def test_llm_agent_requires_model():
    with pytest.raises(InvalidAgentConfigurationError):
        AgentBuilder.create('assistant').build_agent()


@pytest.mark.parametrize('method', ['as_sequential', 'as_parallel', 'as_loop'])
def test_composite_requires_sub_agents(method):
    with pytest.raises(InvalidAgentConfigurationError):
        getattr(AgentBuilder.create('team'), method)([])


def test_lang_graph_requires_nodes_and_root():
    with pytest.raises(InvalidAgentConfigurationError):
        AgentBuilder.create('graph').as_lang_graph([], 'start')


def test_composite_agent_types():
    def leaf(name):
        return LlmAgent(name=name, model=_echo_llm())

    assert isinstance(AgentBuilder.create('s').as_sequential([leaf('a')]).build_agent(), SequentialAgent)
    assert isinstance(AgentBuilder.create('p').as_parallel([leaf('b')]).build_agent(), ParallelAgent)

    loop = AgentBuilder.create('l').as_loop([leaf('c')], max_iterations=2).build_agent()
    assert isinstance(loop, LoopAgent)
    assert loop.max_iterations == 2

    graph = (
        AgentBuilder.create('g')
        .as_lang_graph([LangGraphNode(name='start', agent=leaf('d'))], root_node='start')
        .build_agent()
    )
    assert isinstance(graph, LangGraphAgent)


@pytest.mark.asyncio
async def test_with_agent_uses_existing_agent():
    existing = LlmAgent(name='existing', model=_echo_llm())
    built = await AgentBuilder.create('ignored').with_agent(existing).build()

    assert built.agent is existing
    assert await built.runner.ask('ping') == 'echo: ping'


@pytest.mark.asyncio
async def test_sequential_builder_ask_joins_all_agents():
    first = LlmAgent(name='first', model=utils.MockLlm.create(['one ']))
    second = LlmAgent(name='second', model=utils.MockLlm.create(['two']))

    answer = await AgentBuilder.create('pipeline').as_sequential([first, second]).ask('go')

    assert answer == 'one two'
