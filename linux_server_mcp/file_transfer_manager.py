"""SSH文件传输管理模块

提供基于SFTP子会话的远程文件操作：
- 读取远程文件全文（UTF-8文本）
- 上传、下载：按分块流式传输，不把整个文件读入内存
- 每次操作在共享会话上打开独立的SFTP子会话
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import anyio
import asyncssh
from loguru import logger

from linux_server_mcp.exceptions import FileAccessError, FileTransferError
from linux_server_mcp.session_manager import SessionManager
from linux_server_mcp.settings import SSHMCPSettings
from linux_server_mcp.types import TransferResultDict


@dataclass(frozen=True)
class TransferResult:
    """文件传输结果数据类。

    Attributes:
        local_path: 本地文件路径
        remote_path: 远程文件路径
        bytes_transferred: 已传输字节数
    """

    local_path: str
    remote_path: str
    bytes_transferred: int

    def to_dict(self) -> TransferResultDict:
        """转换为字典格式。"""
        return {
            "local_path": self.local_path,
            "remote_path": self.remote_path,
            "bytes_transferred": self.bytes_transferred,
        }


class FileTransferManager:
    """文件传输管理器。

    封装了基于SFTP的文件读取、上传、下载操作。
    """

    def __init__(
        self,
        *,
        settings: SSHMCPSettings,
        sessions: SessionManager,
    ) -> None:
        """初始化文件传输管理器。

        Args:
            settings: 服务器配置
            sessions: 会话管理器
        """
        self._settings = settings
        self._sessions = sessions

    async def read_file(self, path: str) -> str:
        """读取远程文件全文。

        Args:
            path: 远程文件路径

        Returns:
            按UTF-8解码的文件内容

        Raises:
            FileAccessError: 文件不存在、权限不足或SFTP子会话失败时抛出
        """
        session = await self._sessions.acquire_session()
        try:
            async with session.start_sftp_client() as sftp:
                async with sftp.open(path, "rb") as rf:
                    data = await rf.read()
        except (asyncssh.Error, OSError) as exc:
            await self._discard_if_dead(session)
            raise FileAccessError(f"读取文件失败: {path} - {exc}", path=path) from exc

        if isinstance(data, str):
            return data
        return data.decode("utf-8", errors="replace")

    async def upload_file(self, local_path: str, remote_path: str) -> TransferResult:
        """上传本地文件到远程主机。

        Args:
            local_path: 本地文件路径
            remote_path: 远程目标路径

        Returns:
            TransferResult: 传输结果

        Raises:
            FileTransferError: 本地文件不存在或任一端流出错时抛出
        """
        local = Path(local_path)
        if not local.exists() or not local.is_file():
            raise FileTransferError(
                f"本地文件不存在: {local_path}",
                local_path=local_path,
                remote_path=remote_path,
            )

        chunk_size = self._settings.transfer_chunk_size
        transferred = 0

        session = await self._sessions.acquire_session()
        try:
            async with session.start_sftp_client() as sftp:
                async with await anyio.open_file(local, "rb") as f:
                    async with sftp.open(remote_path, "wb") as rf:
                        while True:
                            chunk = await f.read(chunk_size)
                            if not chunk:
                                break
                            await rf.write(chunk)
                            transferred += len(chunk)
        except (asyncssh.Error, OSError) as exc:
            await self._discard_if_dead(session)
            raise FileTransferError(
                f"上传失败: {local_path} -> {remote_path} - {exc}",
                local_path=local_path,
                remote_path=remote_path,
                details={"bytes_transferred": transferred},
            ) from exc

        logger.info("上传完成: {} -> {} ({} 字节)", local_path, remote_path, transferred)
        return TransferResult(
            local_path=str(local),
            remote_path=remote_path,
            bytes_transferred=transferred,
        )

    async def download_file(self, remote_path: str, local_path: str) -> TransferResult:
        """从远程主机下载文件，自动创建本地目标目录。

        数据先写入同目录下的 .part 文件，完整接收后再替换目标文件；
        失败时删除 .part，目标路径保持原状。

        Args:
            remote_path: 远程文件路径
            local_path: 本地目标路径

        Returns:
            TransferResult: 传输结果

        Raises:
            FileTransferError: 任一端流出错时抛出
        """
        local = Path(local_path)
        partial = local.with_name(local.name + ".part")
        chunk_size = self._settings.transfer_chunk_size
        transferred = 0

        session = await self._sessions.acquire_session()
        try:
            async with session.start_sftp_client() as sftp:
                async with sftp.open(remote_path, "rb") as rf:
                    local.parent.mkdir(parents=True, exist_ok=True)
                    async with await anyio.open_file(partial, "wb") as f:
                        while True:
                            chunk = await rf.read(chunk_size)
                            if not chunk:
                                break
                            if isinstance(chunk, str):
                                chunk_bytes = chunk.encode()
                            else:
                                chunk_bytes = chunk
                            await f.write(chunk_bytes)
                            transferred += len(chunk_bytes)
            partial.replace(local)
        except (asyncssh.Error, OSError) as exc:
            partial.unlink(missing_ok=True)
            await self._discard_if_dead(session)
            raise FileTransferError(
                f"下载失败: {remote_path} -> {local_path} - {exc}",
                local_path=local_path,
                remote_path=remote_path,
                details={"bytes_transferred": transferred},
            ) from exc

        logger.info("下载完成: {} -> {} ({} 字节)", remote_path, local_path, transferred)
        return TransferResult(
            local_path=str(local),
            remote_path=remote_path,
            bytes_transferred=transferred,
        )

    async def _discard_if_dead(self, session: asyncssh.SSHClientConnection) -> None:
        if self._sessions.is_session_dead(session):
            await self._sessions.discard(session)
