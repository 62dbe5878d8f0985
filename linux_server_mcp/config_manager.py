from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pydantic
from dotenv import dotenv_values

from linux_server_mcp.credentials import CredentialResolver
from linux_server_mcp.exceptions import ConfigurationError
from linux_server_mcp.settings import SSHMCPSettings

DEFAULT_CONFIG_FILE = "ssh_mcp_config.json"
DEFAULT_ENV_FILE = ".env"


class ConfigManager:
    """服务器配置加载器。

    配置来源按优先级从低到高叠加：JSON 配置文件、.env 文件、进程环境变量。
    .env 文件同时也是目标主机凭据的来源，通过 credential_resolver() 共享。
    """

    def __init__(self, settings: SSHMCPSettings, *, env_file: Path | None = None) -> None:
        self.settings = settings
        self.env_file = env_file

    def credential_resolver(self) -> CredentialResolver:
        return CredentialResolver(env_file=self.env_file)

    @classmethod
    def load(
        cls,
        *,
        config_file: Path | None = None,
        env_file: Path | None = None,
        env_prefix: str = "SSH_MCP_",
    ) -> ConfigManager:
        """加载并校验服务器配置。

        Args:
            config_file: JSON 配置文件，默认取 {env_prefix}CONFIG_FILE 或 ssh_mcp_config.json
            env_file: .env 文件，默认使用当前目录下存在的 .env
            env_prefix: 环境变量前缀

        Raises:
            ConfigurationError: 配置文件无法解析或配置值非法
        """
        if config_file is None:
            config_file = Path(os.getenv(f"{env_prefix}CONFIG_FILE", DEFAULT_CONFIG_FILE))
        if env_file is None and Path(DEFAULT_ENV_FILE).exists():
            env_file = Path(DEFAULT_ENV_FILE)

        layers: list[dict[str, Any]] = []
        if config_file.is_file():
            layers.append(cls._read_json(config_file))
        if env_file is not None:
            layers.append(cls._pick_prefixed(dotenv_values(env_file), env_prefix))
        layers.append(cls._pick_prefixed(os.environ, env_prefix))

        values: dict[str, Any] = {}
        for layer in layers:
            values.update(layer)
        values["config_file"] = config_file

        try:
            settings = SSHMCPSettings.model_validate(values)
        except pydantic.ValidationError as exc:
            raise ConfigurationError(f"服务器配置非法: {exc}", key=str(config_file)) from exc
        return cls(settings, env_file=env_file)

    @staticmethod
    def _read_json(path: Path) -> dict[str, Any]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"配置文件读取失败: {path} - {exc}", key=str(path)) from exc
        if not isinstance(data, dict):
            raise ConfigurationError("配置文件必须是JSON对象", key=str(path))
        return data

    @staticmethod
    def _pick_prefixed(source: Mapping[str, Any], env_prefix: str) -> dict[str, Any]:
        # 只取与配置字段对应的变量，空值视为未设置
        picked: dict[str, Any] = {}
        for name in SSHMCPSettings.model_fields:
            value = source.get(f"{env_prefix}{name.upper()}")
            if value not in (None, ""):
                picked[name] = value
        return picked
