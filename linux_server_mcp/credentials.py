"""SSH目标主机凭据解析模块

从环境变量（以及可选的 .env 文件）构建不可变的连接描述符：
    SSH_HOST              目标主机（必填）
    SSH_PORT              SSH端口，默认22，非法值回退为22
    SSH_USERNAME          SSH用户名（必填）
    SSH_PASSWORD          SSH密码
    SSH_PRIVATE_KEY_PATH  私钥文件路径（未提供密码时使用）
    SSH_PASSPHRASE        私钥口令（仅与私钥一起使用）
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from dotenv import dotenv_values

from linux_server_mcp.constants import DEFAULT_SSH_PORT
from linux_server_mcp.exceptions import ConfigurationError

ENV_HOST = "SSH_HOST"
ENV_PORT = "SSH_PORT"
ENV_USERNAME = "SSH_USERNAME"
ENV_PASSWORD = "SSH_PASSWORD"
ENV_PRIVATE_KEY_PATH = "SSH_PRIVATE_KEY_PATH"
ENV_PASSPHRASE = "SSH_PASSPHRASE"

_ENV_KEYS = (
    ENV_HOST,
    ENV_PORT,
    ENV_USERNAME,
    ENV_PASSWORD,
    ENV_PRIVATE_KEY_PATH,
    ENV_PASSPHRASE,
)


@dataclass(frozen=True)
class PasswordAuth:
    password: str = field(repr=False)


@dataclass(frozen=True)
class PrivateKeyAuth:
    key_material: bytes = field(repr=False)
    passphrase: str | None = field(default=None, repr=False)


SSHAuth = Union[PasswordAuth, PrivateKeyAuth]


@dataclass(frozen=True)
class ConnectionDescriptor:
    """远程主机连接描述符。

    构建后不可变。auth 必须恰好是 PasswordAuth 或 PrivateKeyAuth 之一。

    Attributes:
        host: 主机地址
        port: SSH端口（1-65535）
        username: SSH用户名
        auth: 认证信息
    """

    host: str
    port: int
    username: str
    auth: SSHAuth

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigurationError("host不能为空", key=ENV_HOST)
        if not self.username:
            raise ConfigurationError("username不能为空", key=ENV_USERNAME)
        if not 1 <= self.port <= 65535:
            raise ConfigurationError(f"端口超出范围: {self.port}", key=ENV_PORT)
        if not isinstance(self.auth, (PasswordAuth, PrivateKeyAuth)):
            raise ConfigurationError("必须提供密码或私钥其中一种认证方式")

    @property
    def auth_mode(self) -> str:
        if isinstance(self.auth, PrivateKeyAuth):
            return "key"
        return "password"


def parse_port(value: str | None) -> int:
    """解析端口号，缺失、非数字或超出范围时回退为默认端口。"""
    if value is None or not str(value).strip():
        return DEFAULT_SSH_PORT
    try:
        port = int(str(value).strip())
    except ValueError:
        return DEFAULT_SSH_PORT
    if not 1 <= port <= 65535:
        return DEFAULT_SSH_PORT
    return port


class CredentialResolver:
    """从配置源解析连接描述符。

    每次 resolve() 都会重新读取配置源，未注入 environ 时以 .env 文件为底、
    进程环境变量覆盖。除读取配置和私钥文件外没有其他副作用。
    """

    def __init__(
        self,
        *,
        environ: Mapping[str, str] | None = None,
        env_file: Path | None = None,
    ) -> None:
        self._environ = environ
        self._env_file = env_file

    def resolve(self) -> ConnectionDescriptor:
        """构建连接描述符。

        Returns:
            ConnectionDescriptor: 连接描述符

        Raises:
            ConfigurationError: 主机或用户名缺失、未提供认证方式或私钥不可读时抛出
        """
        source = self._read_source()

        host = (source.get(ENV_HOST) or "").strip()
        username = (source.get(ENV_USERNAME) or "").strip()
        if not host or not username:
            raise ConfigurationError(
                f"必须设置环境变量 {ENV_HOST} 和 {ENV_USERNAME}",
                key=ENV_HOST if not host else ENV_USERNAME,
            )

        port = parse_port(source.get(ENV_PORT))
        password = source.get(ENV_PASSWORD) or None
        key_path = source.get(ENV_PRIVATE_KEY_PATH) or None

        auth: SSHAuth
        if password:
            auth = PasswordAuth(password=password)
        elif key_path:
            auth = PrivateKeyAuth(
                key_material=self._read_private_key(key_path),
                passphrase=source.get(ENV_PASSPHRASE) or None,
            )
        else:
            raise ConfigurationError(
                f"必须提供 {ENV_PASSWORD} 或 {ENV_PRIVATE_KEY_PATH}",
                key=ENV_PASSWORD,
            )

        return ConnectionDescriptor(host=host, port=port, username=username, auth=auth)

    def _read_source(self) -> dict[str, str]:
        if self._environ is not None:
            return {k: v for k, v in self._environ.items() if k in _ENV_KEYS and v is not None}

        data: dict[str, str] = {}
        env_file = self._env_file
        if env_file is None and Path(".env").exists():
            env_file = Path(".env")
        if env_file is not None and env_file.is_file():
            for k, v in dotenv_values(env_file).items():
                if k in _ENV_KEYS and v is not None:
                    data[k] = v

        for k in _ENV_KEYS:
            value = os.environ.get(k)
            if value is not None:
                data[k] = value
        return data

    @staticmethod
    def _read_private_key(key_path: str) -> bytes:
        path = Path(key_path).expanduser()
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ConfigurationError(
                f"读取私钥文件失败: {key_path} - {exc}",
                key=ENV_PRIVATE_KEY_PATH,
            ) from exc
