"""配置管理模块 - 支持环境变量和 YAML/JSON 配置文件"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, Optional

import yaml

from .errors import InvalidAgentConfigurationError

if TYPE_CHECKING:
    from .models import BaseLlm
    from .sessions import BaseSessionService

logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    """LLM 相关配置"""
    api_base: str = ""
    api_key: str = "EMPTY"
    model: str = "gpt-4o-mini"

    # 请求参数
    temperature: float = 0.7
    max_tokens: int | None = None
    timeout: float = 60.0


@dataclass
class RunnerConfig:
    """Runner 运行时配置"""
    streaming: bool = False
    # 单次调用允许的 LLM 调用总数，<= 0 表示不限制
    max_llm_calls: int = 500
    show_request: bool = False
    log_level: str = "INFO"


@dataclass
class SessionConfig:
    """Session 持久化配置"""
    backend: Literal['memory', 'sqlite'] = 'memory'
    db_path: str = "adk_sessions.db"


def _to_bool(value: str) -> bool:
    return value.lower() in ('true', '1', 'yes')


# 环境变量后缀 -> (配置段, 字段, 转换函数)
_ENV_OPTIONS = {
    "API_BASE": ("llm", "api_base", str),
    "API_KEY": ("llm", "api_key", str),
    "MODEL": ("llm", "model", str),
    "TEMPERATURE": ("llm", "temperature", float),
    "MAX_TOKENS": ("llm", "max_tokens", int),
    "TIMEOUT": ("llm", "timeout", float),
    "STREAMING": ("runner", "streaming", _to_bool),
    "MAX_LLM_CALLS": ("runner", "max_llm_calls", int),
    "SHOW_REQUEST": ("runner", "show_request", _to_bool),
    "LOG_LEVEL": ("runner", "log_level", str),
    "SESSION_BACKEND": ("session", "backend", str),
    "SESSION_DB_PATH": ("session", "db_path", str),
}


@dataclass
class Config:
    """
    主配置类 - 管理所有配置项

    配置优先级（从高到低）:
    1. 代码中直接传入的参数
    2. 环境变量
    3. 配置文件
    4. 默认值

    环境变量命名规则:
    - LLM 配置: ADK_API_BASE, ADK_API_KEY, ADK_MODEL
    - Runner 配置: ADK_STREAMING, ADK_MAX_LLM_CALLS, ADK_LOG_LEVEL
    - Session 配置: ADK_SESSION_BACKEND, ADK_SESSION_DB_PATH
    """
    llm: LLMConfig = field(default_factory=LLMConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    # 环境变量前缀
    ENV_PREFIX: str = "ADK_"

    @classmethod
    def load(
        cls,
        config_file: str | Path | None = None,
        env_prefix: str = "ADK_",
    ) -> "Config":
        """
        加载配置

        Args:
            config_file: 可选的配置文件路径 (支持 .yaml, .yml, .json)
            env_prefix: 环境变量前缀

        Returns:
            Config 实例
        """
        config = cls()
        config.ENV_PREFIX = env_prefix

        # 1. 从配置文件加载
        if config_file:
            config._load_from_file(config_file)
        else:
            config._auto_discover_config()

        # 2. 从环境变量加载（会覆盖配置文件的值）
        config._load_from_env()

        return config

    def _auto_discover_config(self) -> None:
        """自动发现配置文件"""
        # 查找顺序（优先 YAML）
        search_paths = [
            Path.cwd() / "adk.yaml",
            Path.cwd() / "adk.yml",
            Path.cwd() / ".adk.yaml",
            Path.home() / ".adk.yaml",
            Path.cwd() / "adk.json",
        ]

        for path in search_paths:
            if path.exists():
                logger.debug(f"[Config] Loading {path}")
                self._load_from_file(path)
                break

    def _load_from_file(self, config_file: str | Path) -> None:
        """从配置文件加载（支持 YAML 和 JSON）"""
        path = Path(config_file)

        if not path.exists():
            return

        suffix = path.suffix.lower()

        with open(path, 'r', encoding='utf-8') as f:
            if suffix in ('.yaml', '.yml'):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        if data:
            self._apply_dict(data)

    def _load_from_env(self) -> None:
        """从环境变量加载配置，见 _ENV_OPTIONS"""
        for suffix, (section_name, key, convert) in _ENV_OPTIONS.items():
            raw = os.getenv(f"{self.ENV_PREFIX}{suffix}")
            if raw:
                setattr(self._sections()[section_name], key, convert(raw))

    def _sections(self) -> dict[str, Any]:
        return {"llm": self.llm, "runner": self.runner, "session": self.session}

    def _apply_dict(self, data: dict[str, Any]) -> None:
        """从字典应用配置（只接受已知字段）"""
        for section_name, target in self._sections().items():
            for key, value in (data.get(section_name) or {}).items():
                if hasattr(target, key):
                    setattr(target, key, value)
                else:
                    logger.warning(f"[Config] Unknown option {section_name}.{key}")

    def to_dict(self) -> dict[str, Any]:
        return {name: asdict(section) for name, section in self._sections().items()}

    def save(self, config_file: str | Path) -> None:
        """保存配置到文件（根据扩展名自动选择格式）"""
        path = Path(config_file)
        suffix = path.suffix.lower()

        with open(path, 'w', encoding='utf-8') as f:
            if suffix in ('.yaml', '.yml'):
                yaml.dump(
                    self.to_dict(),
                    f,
                    default_flow_style=False,
                    allow_unicode=True,
                    sort_keys=False,
                )
            else:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    # ==================== 工厂方法 ====================

    def create_session_service(self) -> 'BaseSessionService':
        """根据 session.backend 创建 SessionService"""
        from .sessions import InMemorySessionService, SqliteSessionService

        if self.session.backend == 'sqlite':
            return SqliteSessionService(db_path=self.session.db_path)
        if self.session.backend == 'memory':
            return InMemorySessionService()
        raise InvalidAgentConfigurationError(f"Unknown session backend: {self.session.backend}")

    def create_llm(self, model: Optional[str] = None) -> 'BaseLlm':
        """根据配置创建 LLM 实例"""
        from .models import OpenAILlm

        if not self.llm.api_base:
            raise InvalidAgentConfigurationError(
                "未配置 LLM API。请在配置文件 (adk.yaml) 中设置 llm.api_base，"
                "或在 Agent 中直接传入 LLM 实例。"
            )
        return OpenAILlm(
            model=model or self.llm.model,
            api_base=self.llm.api_base,
            api_key=self.llm.api_key,
            timeout=self.llm.timeout,
            show_request=self.runner.show_request,
        )


def setup_logging(level: str | int = "INFO") -> None:
    """为 adk_runtime 的日志安装一个基础 handler"""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("adk_runtime").setLevel(level)


# 全局默认配置实例（懒加载）
_default_config: Config | None = None


def get_config() -> Config:
    """获取全局默认配置"""
    global _default_config
    if _default_config is None:
        _default_config = Config.load()
    return _default_config


def set_config(config: Config) -> None:
    """设置全局默认配置"""
    global _default_config
    _default_config = config
