from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import asyncssh
from loguru import logger

from linux_server_mcp.constants import DEFAULT_LIST_PATH, MONITOR_COMMANDS, RESOURCE_COMMANDS
from linux_server_mcp.exceptions import (
    CommandExecutionError,
    UnknownOperationError,
    ValidationError,
    WriteError,
)
from linux_server_mcp.session_manager import SessionManager
from linux_server_mcp.settings import SSHMCPSettings
from linux_server_mcp.shell import build_list_command, build_write_command
from linux_server_mcp.types import CommandResultDict, MonitorKind, ResourceName

_READ_CHUNK_SIZE = 65536


def _to_int(value: int | None) -> int:
    return int(value or 0)


@dataclass(frozen=True)
class SSHCommandResult:
    command: str
    exit_status: int
    stdout: str
    stderr: str

    def to_dict(self) -> CommandResultDict:
        return {
            "command": self.command,
            "exit_status": self.exit_status,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }


async def _drain(stream: Any) -> str:
    buf = bytearray()
    while True:
        chunk = await stream.read(_READ_CHUNK_SIZE)
        if not chunk:
            break
        buf.extend(chunk.encode() if isinstance(chunk, str) else chunk)
    return buf.decode(errors="replace")


class SSHManager:
    """基于执行通道的远程操作：命令执行、写文件、目录列表、系统监控与系统资源。

    每个操作都在共享会话上打开独立的执行通道，并发操作之间不会互相干扰输出。
    """

    def __init__(self, *, settings: SSHMCPSettings, sessions: SessionManager) -> None:
        self._settings = settings
        self._sessions = sessions

    async def execute_command(self, command: str) -> SSHCommandResult:
        """执行单条远程命令。

        同时收集标准输出与标准错误，以通道关闭作为完成信号，
        关闭后再合并两路输出并读取退出码。

        Args:
            command: 要执行的命令

        Returns:
            SSHCommandResult: 包含stdout、stderr与exit_status

        Raises:
            ValidationError: 命令为空
            CommandExecutionError: 执行通道无法打开或执行超时
        """
        cmd = command.strip()
        if not cmd:
            raise ValidationError("command不能为空", operation="execute_command", argument="command")
        logger.debug("执行远程命令: {}", cmd)
        return await self._run(cmd)

    async def write_file(self, path: str, content: str) -> None:
        """把 content 原样写入远程文件 path。

        Raises:
            WriteError: 写入命令退出码非零
        """
        try:
            cmd = build_write_command(path, content)
        except ValueError as exc:
            raise ValidationError(str(exc), operation="write_file", argument="content") from exc

        logger.debug("写入远程文件: {} ({} 字符)", path, len(content))
        result = await self._run(cmd)
        if result.exit_status != 0:
            raise WriteError(
                f"写入文件失败: {result.stderr.strip()}",
                path=path,
                exit_status=result.exit_status,
                stderr=result.stderr,
            )

    async def list_directory(
        self,
        path: str = DEFAULT_LIST_PATH,
        *,
        detailed: bool = False,
    ) -> SSHCommandResult:
        target = path or DEFAULT_LIST_PATH
        try:
            cmd = build_list_command(target, detailed=detailed)
        except ValueError as exc:
            raise ValidationError(str(exc), operation="list_directory", argument="path") from exc
        return await self._run(cmd)

    async def monitor(self, kind: MonitorKind) -> str:
        """并发执行监控类型对应的全部诊断命令。

        输出按命令表顺序拼接，与各命令的完成先后无关。
        """
        commands = MONITOR_COMMANDS.get(kind)
        if commands is None:
            raise ValidationError(
                f"不支持的监控类型: {kind}",
                operation="system_monitor",
                argument="type",
            )

        results = await asyncio.gather(*(self._run(cmd) for cmd in commands))
        return "\n".join(
            f"=== {cmd} ===\n{result.stdout}\n" for cmd, result in zip(commands, results)
        )

    async def read_resource(self, name: ResourceName) -> dict[str, Any]:
        entry = RESOURCE_COMMANDS.get(name)
        if entry is None:
            raise UnknownOperationError(f"未知资源: {name}", name=name)

        cmd, field_name = entry
        result = await self._run(cmd)
        return {
            field_name: result.stdout,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def _run(self, cmd: str) -> SSHCommandResult:
        session = await self._sessions.acquire_session()

        try:
            process = await session.create_process(cmd, encoding=None)
        except (asyncssh.Error, OSError) as exc:
            if self._sessions.is_session_dead(session):
                await self._sessions.discard(session)
            raise CommandExecutionError(f"无法打开执行通道: {exc}", command=cmd) from exc

        timeout = self._settings.command_timeout_seconds
        try:
            if timeout is None:
                stdout, stderr = await self._collect(process)
            else:
                stdout, stderr = await asyncio.wait_for(self._collect(process), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise CommandExecutionError(
                f"命令执行超时({timeout}秒): {cmd}",
                command=cmd,
            ) from exc
        finally:
            process.close()

        return SSHCommandResult(
            command=cmd,
            exit_status=_to_int(process.exit_status),
            stdout=stdout,
            stderr=stderr,
        )

    @staticmethod
    async def _collect(process: Any) -> tuple[str, str]:
        stdout_task = asyncio.ensure_future(_drain(process.stdout))
        stderr_task = asyncio.ensure_future(_drain(process.stderr))
        try:
            # 以通道关闭为准，流结束不代表命令已完成
            await process.wait_closed()
            stdout, stderr = await asyncio.gather(stdout_task, stderr_task)
        finally:
            for task in (stdout_task, stderr_task):
                if not task.done():
                    task.cancel()
        return stdout, stderr
