"""State - 带命名空间前缀的会话状态视图"""

from __future__ import annotations

from typing import Any, Iterator, Optional


class State:
    """
    会话状态视图：已提交的值 (value) + 待提交的增量 (delta)

    前缀规则：
    - app:  应用级，同一 app 的所有会话共享
    - user: 用户级，同一用户的所有会话共享
    - temp: 调用级，只在当前调用内可见，从不持久化
    - 无前缀: 会话级

    读取先看 delta 再看 value；写入只进入 delta，
    由 append_event 通过 EventActions.state_delta 提交。
    """

    APP_PREFIX = "app:"
    USER_PREFIX = "user:"
    TEMP_PREFIX = "temp:"

    def __init__(self, value: dict[str, Any], delta: dict[str, Any]):
        self._value = value
        self._delta = delta

    def __getitem__(self, key: str) -> Any:
        if key in self._delta:
            return self._delta[key]
        return self._value[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._delta[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._delta or key in self._value

    def __iter__(self) -> Iterator[str]:
        return iter(self.to_dict())

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self:
            return default
        return self[key]

    def update(self, delta: dict[str, Any]) -> None:
        self._delta.update(delta)

    def has_delta(self) -> bool:
        return bool(self._delta)

    def resolve(self, name: str, default: Any = None) -> Any:
        """
        按作用域从具体到宽泛查找无前缀的键

        顺序：temp: > 会话级 > user: > app:
        """
        for key in (self.TEMP_PREFIX + name, name, self.USER_PREFIX + name, self.APP_PREFIX + name):
            if key in self:
                return self[key]
        return default

    def to_dict(self) -> dict[str, Any]:
        """合并后的状态"""
        result = dict(self._value)
        result.update(self._delta)
        return result

    def __repr__(self) -> str:
        return f"State({self.to_dict()!r})"


def split_state_delta(delta: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any], dict[str, Any]]:
    """
    按前缀拆分增量为 (app, user, session) 三层

    app/user 层的键去掉前缀；temp: 键被丢弃
    """
    app_delta: dict[str, Any] = {}
    user_delta: dict[str, Any] = {}
    session_delta: dict[str, Any] = {}
    for key, value in delta.items():
        if key.startswith(State.APP_PREFIX):
            app_delta[key[len(State.APP_PREFIX):]] = value
        elif key.startswith(State.USER_PREFIX):
            user_delta[key[len(State.USER_PREFIX):]] = value
        elif not key.startswith(State.TEMP_PREFIX):
            session_delta[key] = value
    return app_delta, user_delta, session_delta


def merge_scoped_state(
    session_state: dict[str, Any],
    app_state: Optional[dict[str, Any]] = None,
    user_state: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """把 app/user 层重新加上前缀，合并进会话状态"""
    merged = dict(session_state)
    for key, value in (app_state or {}).items():
        merged[State.APP_PREFIX + key] = value
    for key, value in (user_state or {}).items():
        merged[State.USER_PREFIX + key] = value
    return merged
