"""SSH会话缓存模块

按 (host, port, username) 维度保存已认证的SSH会话，进程生命周期内有效，
没有过期和淘汰策略，仅在显式移除或进程退出时释放。

缓存本身不做同步：同一键的首次建立必须由 SessionManager 的
在途连接表串行化，不同键之间的读写互不影响。
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import asyncssh

from linux_server_mcp.credentials import ConnectionDescriptor

Session = asyncssh.SSHClientConnection


@dataclass(frozen=True)
class SessionKey:
    """会话缓存键。

    只由目标身份决定，不包含认证信息：同一 host/port/username
    使用不同凭据时会复用同一个会话。

    Attributes:
        host: 主机地址
        port: SSH端口
        username: SSH用户名
    """

    host: str
    port: int
    username: str

    @classmethod
    def from_descriptor(cls, descriptor: ConnectionDescriptor) -> SessionKey:
        return cls(host=descriptor.host, port=descriptor.port, username=descriptor.username)

    def __str__(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"


class SessionCache:
    """内存会话缓存。"""

    def __init__(self) -> None:
        self._sessions: dict[SessionKey, Session] = {}

    def get(self, key: SessionKey) -> Session | None:
        return self._sessions.get(key)

    def put(self, key: SessionKey, session: Session) -> None:
        self._sessions[key] = session

    def remove(self, key: SessionKey) -> Session | None:
        return self._sessions.pop(key, None)

    def find_key(self, session: Session) -> SessionKey | None:
        for key, cached in self._sessions.items():
            if cached is session:
                return key
        return None

    def drain(self) -> list[Session]:
        """移除并返回全部会话。"""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        return sessions

    def items(self) -> Iterator[tuple[SessionKey, Session]]:
        return iter(list(self._sessions.items()))

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
