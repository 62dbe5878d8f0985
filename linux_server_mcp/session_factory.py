from __future__ import annotations

import asyncio
from typing import Protocol

import asyncssh
from loguru import logger

from linux_server_mcp.credentials import ConnectionDescriptor, PasswordAuth, PrivateKeyAuth
from linux_server_mcp.exceptions import SSHConnectionError
from linux_server_mcp.session_cache import Session
from linux_server_mcp.settings import SSHMCPSettings


class SessionFactory(Protocol):
    async def open(self, descriptor: ConnectionDescriptor) -> Session: ...


class AsyncSSHSessionFactory:
    """基于 asyncssh 的会话工厂。

    每次 open() 都发起一次完整的握手与认证，失败时不做内部重试，
    重试与否由调用方决定。
    """

    def __init__(self, *, settings: SSHMCPSettings) -> None:
        self._settings = settings

    async def open(self, descriptor: ConnectionDescriptor) -> Session:
        """建立新的已认证SSH会话。

        Args:
            descriptor: 连接描述符

        Returns:
            已认证的SSH连接

        Raises:
            SSHConnectionError: 认证失败、网络错误、私钥无法解析或超时时抛出
        """
        host, port, username = descriptor.host, descriptor.port, descriptor.username
        timeout = self._settings.connect_timeout_seconds

        try:
            options = self._build_options(descriptor)
            connect_task = asyncssh.connect(host, **options)
            if timeout is None:
                conn = await connect_task
            else:
                conn = await asyncio.wait_for(connect_task, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise SSHConnectionError(
                f"SSH连接超时: {host}:{port}",
                host=host,
                port=port,
                username=username,
            ) from exc
        except Exception as exc:
            raise SSHConnectionError(
                f"SSH连接失败: {host}:{port} - {exc}",
                host=host,
                port=port,
                username=username,
            ) from exc

        logger.info("SSH会话已建立: {}@{}:{} ({})", username, host, port, descriptor.auth_mode)
        return conn

    def _build_options(self, descriptor: ConnectionDescriptor) -> dict[str, object]:
        known_hosts = self._settings.known_hosts
        options: dict[str, object] = {
            "port": descriptor.port,
            "username": descriptor.username,
            "known_hosts": str(known_hosts) if known_hosts is not None else None,
        }

        auth = descriptor.auth
        if isinstance(auth, PasswordAuth):
            options["password"] = auth.password
            options["client_keys"] = None
        elif isinstance(auth, PrivateKeyAuth):
            options["client_keys"] = [
                asyncssh.import_private_key(auth.key_material, auth.passphrase)
            ]
        return options
