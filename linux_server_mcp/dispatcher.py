"""工具调用分发模块

把外部工具名与参数映射到一次远程操作：
- 先校验必填参数，缺失或为空时直接返回错误，不获取任何会话
- 未知工具名返回 UnknownOperationError
- 所有执行阶段的错误都在此处转换为带错误标记的响应，不会向外抛出
"""
from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast, get_args

from loguru import logger

from linux_server_mcp.constants import DEFAULT_LIST_PATH, DEFAULT_MONITOR_KIND, MONITOR_COMMANDS
from linux_server_mcp.exceptions import SSHMCPError, UnknownOperationError, ValidationError
from linux_server_mcp.file_transfer_manager import FileTransferManager
from linux_server_mcp.ssh_manager import SSHManager
from linux_server_mcp.types import (
    ErrorDict,
    MonitorKind,
    OperationName,
    OperationResponseDict,
    ResourceName,
)

OPERATION_NAMES: tuple[OperationName, ...] = get_args(OperationName)

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})

Handler = Callable[[Mapping[str, Any]], Awaitable[str]]


@dataclass(frozen=True)
class OperationResponse:
    """统一的工具调用响应。

    Attributes:
        text: 返回给客户端的文本
        is_error: 是否为错误响应
        error: 错误详情（error_type、message、details）
    """

    text: str
    is_error: bool = False
    error: ErrorDict | None = None

    @classmethod
    def from_error(cls, exc: SSHMCPError) -> OperationResponse:
        return cls(
            text=f"错误: {exc.message}",
            is_error=True,
            error=cast(ErrorDict, exc.to_error_dict()),
        )

    def to_dict(self) -> OperationResponseDict:
        return {"text": self.text, "is_error": self.is_error, "error": self.error}


def _require(
    arguments: Mapping[str, Any],
    name: str,
    *,
    operation: str,
    strip: bool = True,
) -> str:
    value = arguments.get(name)
    text = "" if value is None else str(value)
    if not (text.strip() if strip else text):
        raise ValidationError(f"缺少必填参数: {name}", operation=operation, argument=name)
    return text


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


class OperationDispatcher:
    def __init__(self, *, ssh: SSHManager, transfer: FileTransferManager) -> None:
        self._ssh = ssh
        self._transfer = transfer
        self._handlers: dict[OperationName, Handler] = {
            "execute_command": self._execute_command,
            "read_file": self._read_file,
            "write_file": self._write_file,
            "upload_file": self._upload_file,
            "download_file": self._download_file,
            "list_directory": self._list_directory,
            "system_monitor": self._system_monitor,
        }
        missing = set(OPERATION_NAMES) - set(self._handlers)
        if missing:
            raise RuntimeError(f"未注册处理函数的工具: {sorted(missing)}")

    async def dispatch(
        self,
        name: str,
        arguments: Mapping[str, Any] | None = None,
    ) -> OperationResponse:
        """执行一次工具调用。

        Args:
            name: 工具名
            arguments: 工具参数

        Returns:
            OperationResponse: 成功或带错误标记的响应，本方法不抛出异常
        """
        args: Mapping[str, Any] = arguments or {}
        try:
            handler = self._handlers.get(cast(OperationName, name))
            if handler is None:
                raise UnknownOperationError(f"未知工具: {name}", name=name)
            text = await handler(args)
        except SSHMCPError as exc:
            logger.warning("工具调用失败 [{}]: {}", name, exc.message)
            return OperationResponse.from_error(exc)
        except Exception as exc:
            logger.exception("工具调用出现未预期的错误 [{}]", name)
            return OperationResponse(
                text=f"错误: {exc}",
                is_error=True,
                error={"error_type": type(exc).__name__, "message": str(exc), "details": {}},
            )
        return OperationResponse(text=text)

    async def read_resource(self, name: ResourceName) -> str:
        payload = await self._ssh.read_resource(name)
        return json.dumps(payload, ensure_ascii=False, indent=2)

    async def _execute_command(self, args: Mapping[str, Any]) -> str:
        command = _require(args, "command", operation="execute_command")
        result = await self._ssh.execute_command(command)
        return (
            f"命令: {result.command}\n"
            f"退出码: {result.exit_status}\n\n"
            f"标准输出:\n{result.stdout}\n\n"
            f"标准错误:\n{result.stderr}"
        )

    async def _read_file(self, args: Mapping[str, Any]) -> str:
        path = _require(args, "path", operation="read_file")
        content = await self._transfer.read_file(path)
        return f"文件: {path}\n\n内容:\n{content}"

    async def _write_file(self, args: Mapping[str, Any]) -> str:
        path = _require(args, "path", operation="write_file")
        content = _require(args, "content", operation="write_file", strip=False)
        await self._ssh.write_file(path, content)
        return f"文件 {path} 写入成功"

    async def _upload_file(self, args: Mapping[str, Any]) -> str:
        local_path = _require(args, "local_path", operation="upload_file")
        remote_path = _require(args, "remote_path", operation="upload_file")
        await self._transfer.upload_file(local_path, remote_path)
        return f"文件从 {local_path} 上传到 {remote_path} 成功"

    async def _download_file(self, args: Mapping[str, Any]) -> str:
        remote_path = _require(args, "remote_path", operation="download_file")
        local_path = _require(args, "local_path", operation="download_file")
        await self._transfer.download_file(remote_path, local_path)
        return f"文件从 {remote_path} 下载到 {local_path} 成功"

    async def _list_directory(self, args: Mapping[str, Any]) -> str:
        path = str(args.get("path") or DEFAULT_LIST_PATH)
        detailed = _as_bool(args.get("detailed", False))
        result = await self._ssh.list_directory(path, detailed=detailed)
        text = f"目录: {path}\n\n{result.stdout}"
        if result.exit_status != 0 and result.stderr:
            text += f"\n标准错误:\n{result.stderr}"
        return text

    async def _system_monitor(self, args: Mapping[str, Any]) -> str:
        kind = str(args.get("type") or DEFAULT_MONITOR_KIND)
        if kind not in MONITOR_COMMANDS:
            raise ValidationError(
                f"不支持的监控类型: {kind}",
                operation="system_monitor",
                argument="type",
            )
        output = await self._ssh.monitor(cast(MonitorKind, kind))
        return f"系统监控 ({kind}):\n\n{output}"
