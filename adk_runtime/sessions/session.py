"""Session - 一次对话的持久化记录"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from ..events import Event


@dataclass
class Session:
    """
    会话 - 维护一次完整对话的所有事件和状态

    核心设计理念:
    - Session 是有状态的，存储所有历史事件
    - Runner 是无状态的，每次执行从 Session 加载历史
    - (app_name, user_id, id) 唯一确定一个会话
    - events 只追加；last_update_time 在每次变更时严格递增
    - 只能通过 SessionService.append_event 修改
    """
    app_name: str
    user_id: str
    id: str = field(default_factory=lambda: str(uuid4()))
    state: dict[str, Any] = field(default_factory=dict)
    events: list[Event] = field(default_factory=list)
    last_update_time: float = field(default_factory=time.time)

    def touch(self, timestamp: float | None = None) -> float:
        """更新 last_update_time，保证严格递增"""
        now = timestamp if timestamp is not None else time.time()
        self.last_update_time = max(now, self.last_update_time + 1e-6)
        return self.last_update_time

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'app_name': self.app_name,
            'user_id': self.user_id,
            'state': self.state,
            'events': [e.to_dict() for e in self.events],
            'last_update_time': self.last_update_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        return cls(
            id=data['id'],
            app_name=data['app_name'],
            user_id=data['user_id'],
            state=data.get('state') or {},
            events=[Event.from_dict(e) for e in data.get('events', [])],
            last_update_time=data.get('last_update_time', 0.0),
        )
