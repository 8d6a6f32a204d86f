from __future__ import annotations

import logging

import pytest
import yaml

from adk_runtime import (
    Config,
    InMemorySessionService,
    InvalidAgentConfigurationError,
    LlmAgent,
    OpenAILlm,
    SqliteSessionService,
    set_config,
    setup_logging,
)


def test_defaults():
    config = Config()

    assert config.llm.api_base == ''
    assert config.runner.streaming is False
    assert config.runner.max_llm_calls == 500
    assert config.session.backend == 'memory'


def test_load_yaml_file(tmp_path, monkeypatch):
    monkeypatch.delenv('ADK_MODEL', raising=False)
    path = tmp_path / 'adk.yaml'
    path.write_text(yaml.safe_dump({
        'llm': {'api_base': 'http://localhost:8000/v1', 'model': 'qwen'},
        'runner': {'streaming': True, 'max_llm_calls': 20},
        'session': {'backend': 'sqlite', 'db_path': str(tmp_path / 'db.sqlite')},
    }))

    config = Config.load(path)

    assert config.llm.api_base == 'http://localhost:8000/v1'
    assert config.llm.model == 'qwen'
    assert config.runner.streaming is True
    assert config.runner.max_llm_calls == 20
    assert isinstance(config.create_session_service(), SqliteSessionService)


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / 'adk.json'
    path.write_text('{"llm": {"model": "from-file"}}')
    monkeypatch.setenv('ADK_MODEL', 'from-env')
    monkeypatch.setenv('ADK_STREAMING', 'yes')
    monkeypatch.setenv('ADK_MAX_LLM_CALLS', '7')

    config = Config.load(path)

    assert config.llm.model == 'from-env'
    assert config.runner.streaming is True
    assert config.runner.max_llm_calls == 7


def test_auto_discovers_config_in_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / 'adk.yaml').write_text('llm:\n  model: discovered\n')
    monkeypatch.delenv('ADK_MODEL', raising=False)

    assert Config.load().llm.model == 'discovered'


def test_unknown_keys_are_ignored(tmp_path, caplog):
    path = tmp_path / 'adk.yaml'
    path.write_text('llm:\n  model: m\n  colour: blue\n')

    config = Config.load(path, env_prefix='ADK_TEST_UNUSED_')

    assert config.llm.model == 'm'
    assert not hasattr(config.llm, 'colour')
    assert 'llm.colour' in caplog.text


def test_save_round_trip(tmp_path):
    config = Config()
    config.llm.model = 'saved-model'
    config.runner.max_llm_calls = 3
    path = tmp_path / 'out.yaml'

    config.save(path)
    loaded = Config.load(path, env_prefix='ADK_TEST_UNUSED_')

    assert loaded.to_dict() == config.to_dict()


def test_create_session_service():
    assert isinstance(Config().create_session_service(), InMemorySessionService)

    config = Config()
    config.session.backend = 'redis'
    with pytest.raises(InvalidAgentConfigurationError):
        config.create_session_service()


def test_create_llm_requires_api_base():
    with pytest.raises(InvalidAgentConfigurationError):
        Config().create_llm()


def test_model_name_resolved_through_config():
    config = Config()
    config.llm.api_base = 'http://localhost:8000/v1'
    config.llm.api_key = 'secret'
    set_config(config)

    agent = LlmAgent(name='root_agent', model='my-model')
    llm = agent.canonical_model

    assert isinstance(llm, OpenAILlm)
    assert llm.model == 'my-model'
    assert llm.api_base == 'http://localhost:8000/v1'
    assert agent.canonical_model is llm


def test_setup_logging_sets_package_level():
    package_logger = logging.getLogger('adk_runtime')
    previous = package_logger.level
    try:
        setup_logging('debug')
        assert package_logger.level == logging.DEBUG
    finally:
        package_logger.setLevel(previous)
