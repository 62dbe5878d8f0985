"""Linux Server MCP Server 模块

本模块基于 MCP (Model Context Protocol) 暴露远程Linux服务器的操作能力。
所有工具与资源共用同一个SSH会话（按 host/port/username 缓存）：
- 工具：execute_command、read_file、write_file、upload_file、
  download_file、list_directory、system_monitor
- 资源：linux://system/info、linux://system/processes、
  linux://system/disk、linux://system/memory

使用方式：
    通过 stdio 启动 MCP 服务器，供 Claude Desktop 等客户端调用。
    目标主机通过 SSH_HOST、SSH_USERNAME、SSH_PASSWORD 或
    SSH_PRIVATE_KEY_PATH 等环境变量配置。
"""
from __future__ import annotations

import sys
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from io import TextIOWrapper
from pathlib import Path
from tempfile import gettempdir
from typing import Any, Literal, cast

import anyio
from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.server.stdio import stdio_server

from linux_server_mcp.constants import DEFAULT_LIST_PATH, DEFAULT_MONITOR_KIND, RESOURCE_URI_SCHEME
from linux_server_mcp.credentials import CredentialResolver
from linux_server_mcp.dispatcher import OperationDispatcher
from linux_server_mcp.file_transfer_manager import FileTransferManager
from linux_server_mcp.session_cache import SessionCache
from linux_server_mcp.session_factory import AsyncSSHSessionFactory, SessionFactory
from linux_server_mcp.session_manager import SessionManager
from linux_server_mcp.settings import SSHMCPSettings
from linux_server_mcp.ssh_manager import SSHManager
from linux_server_mcp.types import MonitorKind, ResourceName

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def run_stdio_server(server: FastMCP) -> None:
    async def _run() -> None:
        stdin = anyio.wrap_file(
            TextIOWrapper(sys.stdin.buffer, encoding="utf-8", errors="replace")
        )
        stdout = anyio.wrap_file(
            TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
        )
        async with stdio_server(stdin=stdin, stdout=stdout) as (read_stream, write_stream):
            lowlevel = cast(Any, server)._mcp_server
            await lowlevel.run(
                read_stream,
                write_stream,
                lowlevel.create_initialization_options(),
            )

    try:
        anyio.run(_run)
    except KeyboardInterrupt:
        raise
    except BaseException:
        error_path = Path(gettempdir()) / "linux-server-mcp-startup-error.log"
        with error_path.open("a", encoding="utf-8") as f:
            f.write("\n" + "=" * 80 + "\n")
            f.write(traceback.format_exc())
        raise


def create_mcp_server(
    *,
    settings: SSHMCPSettings,
    resolver: CredentialResolver | None = None,
    factory: SessionFactory | None = None,
) -> FastMCP:
    sessions = SessionManager(
        resolver=resolver or CredentialResolver(),
        cache=SessionCache(),
        factory=factory or AsyncSSHSessionFactory(settings=settings),
    )
    ssh = SSHManager(settings=settings, sessions=sessions)
    transfer = FileTransferManager(settings=settings, sessions=sessions)
    dispatcher = OperationDispatcher(ssh=ssh, transfer=transfer)

    @asynccontextmanager
    async def lifespan(_app: FastMCP) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await sessions.close_all()

    mcp = FastMCP(
        name="linux-server",
        instructions="远程Linux服务器操作工具：命令执行、文件读写与传输、目录浏览、系统监控",
        log_level=cast(LogLevel, settings.log_level.upper()),
        lifespan=lifespan,
    )

    async def call(name: str, arguments: dict[str, Any]) -> str:
        response = await dispatcher.dispatch(name, arguments)
        if response.is_error:
            raise ToolError(response.text)
        return response.text

    async def read(name: ResourceName) -> str:
        try:
            return await dispatcher.read_resource(name)
        except Exception:
            logger.exception("读取资源失败: {}{}", RESOURCE_URI_SCHEME, name)
            raise

    @mcp.tool()
    async def execute_command(*, command: str) -> str:
        """在远程Linux服务器上执行命令。

        Args:
            command: 要执行的命令

        Returns:
            str: 命令、退出码、标准输出与标准错误
        """
        return await call("execute_command", {"command": command})

    @mcp.tool()
    async def read_file(*, path: str) -> str:
        """读取远程服务器上的文件内容。

        Args:
            path: 文件路径

        Returns:
            str: 文件内容（UTF-8）
        """
        return await call("read_file", {"path": path})

    @mcp.tool()
    async def write_file(*, path: str, content: str) -> str:
        """在远程服务器上写入文件。

        内容按原样写入，不会被Shell解释。

        Args:
            path: 文件路径
            content: 文件内容
        """
        return await call("write_file", {"path": path, "content": content})

    @mcp.tool()
    async def upload_file(*, local_path: str, remote_path: str) -> str:
        """上传本地文件到远程服务器。

        Args:
            local_path: 本地文件路径
            remote_path: 远程文件路径
        """
        return await call("upload_file", {"local_path": local_path, "remote_path": remote_path})

    @mcp.tool()
    async def download_file(*, remote_path: str, local_path: str) -> str:
        """从远程服务器下载文件到本地。

        Args:
            remote_path: 远程文件路径
            local_path: 本地文件路径
        """
        return await call("download_file", {"remote_path": remote_path, "local_path": local_path})

    @mcp.tool()
    async def list_directory(*, path: str = DEFAULT_LIST_PATH, detailed: bool = False) -> str:
        """列出远程目录内容。

        Args:
            path: 目录路径，默认当前目录
            detailed: 是否显示详细信息（ls -la）
        """
        return await call("list_directory", {"path": path, "detailed": detailed})

    @mcp.tool()
    async def system_monitor(*, type: MonitorKind = DEFAULT_MONITOR_KIND) -> str:
        """获取系统监控信息。

        Args:
            type: 监控类型 - cpu/memory/disk/network/all
        """
        return await call("system_monitor", {"type": type})

    @mcp.resource(
        f"{RESOURCE_URI_SCHEME}system/info",
        name="系统信息",
        description="远程Linux服务器的系统信息",
        mime_type="application/json",
    )
    async def system_info() -> str:
        return await read("system/info")

    @mcp.resource(
        f"{RESOURCE_URI_SCHEME}system/processes",
        name="进程列表",
        description="当前运行的进程列表",
        mime_type="application/json",
    )
    async def system_processes() -> str:
        return await read("system/processes")

    @mcp.resource(
        f"{RESOURCE_URI_SCHEME}system/disk",
        name="磁盘使用情况",
        description="磁盘空间使用情况",
        mime_type="application/json",
    )
    async def system_disk() -> str:
        return await read("system/disk")

    @mcp.resource(
        f"{RESOURCE_URI_SCHEME}system/memory",
        name="内存使用情况",
        description="内存使用情况",
        mime_type="application/json",
    )
    async def system_memory() -> str:
        return await read("system/memory")

    return mcp
