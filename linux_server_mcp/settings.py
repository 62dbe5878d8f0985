"""Linux Server MCP 配置设置模块

使用 Pydantic Settings 管理服务器自身的配置，支持以下配置方式（优先级从高到低）：
1. 环境变量（前缀：SSH_MCP_）
2. .env 文件
3. JSON 配置文件
4. 默认值

远程主机的连接信息（SSH_HOST、SSH_USERNAME 等）不在此处，
由 credentials.CredentialResolver 在每次建立会话时读取。

示例环境变量：
    SSH_MCP_LOG_LEVEL=DEBUG
    SSH_MCP_CONNECT_TIMEOUT_SECONDS=10
    SSH_MCP_COMMAND_TIMEOUT_SECONDS=120
"""
from __future__ import annotations

from pathlib import Path

from pydantic import Field, PositiveFloat
from pydantic_settings import BaseSettings, SettingsConfigDict

from linux_server_mcp.constants import DEFAULT_CHUNK_SIZE


class SSHMCPSettings(BaseSettings):
    """Linux Server MCP 服务器配置类。

    支持通过环境变量、.env文件、JSON文件或默认值进行配置。
    环境变量前缀为 SSH_MCP_。
    """

    model_config = SettingsConfigDict(env_prefix="SSH_MCP_", extra="ignore")

    # 配置文件路径
    config_file: Path = Field(default=Path("ssh_mcp_config.json"))

    # 日志配置
    log_level: str = Field(default="INFO", description="日志级别")
    log_dir: Path = Field(default=Path("logs"), description="日志目录")
    log_rotation: str = Field(default="10 MB", description="日志轮转大小")
    log_retention: str = Field(default="30 days", description="日志保留时间")

    # 会话配置
    connect_timeout_seconds: PositiveFloat | None = Field(
        default=30.0, description="SSH握手超时时间(秒)，None表示不限制"
    )
    command_timeout_seconds: PositiveFloat | None = Field(
        default=None, description="单条命令执行超时时间(秒)，None表示不限制"
    )

    # SSH 安全配置
    known_hosts: Path | None = Field(
        default=None,
        description="known_hosts文件路径，None表示不校验主机密钥",
    )

    # 文件传输配置
    transfer_chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE, ge=1024, description="上传/下载分块大小(字节)"
    )
