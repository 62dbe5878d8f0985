"""Linux Server MCP 自定义异常模块

定义项目中使用的所有自定义异常类，提供结构化的错误处理。
异常层次结构：
    SSHMCPError (基类)
    ├── ConfigurationError      - 配置/凭据缺失或不可读
    ├── SSHConnectionError      - SSH连接建立失败
    ├── CommandExecutionError   - 命令通道无法打开或执行超时
    ├── FileAccessError         - 远程文件读取失败
    ├── WriteError              - 远程文件写入失败
    ├── FileTransferError       - 文件上传/下载失败
    ├── ValidationError         - 工具参数缺失或非法
    └── UnknownOperationError   - 未知的工具或资源
"""
from __future__ import annotations


class SSHMCPError(Exception):
    """Linux Server MCP 基础异常类。

    所有自定义异常的基类，提供统一的错误消息格式。

    Attributes:
        message: 用户友好的错误描述信息
        details: 可选的附加错误详情字典
    """

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        """初始化基础异常。

        Args:
            message: 用户友好的错误描述信息
            details: 可选的附加错误详情
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_error_dict(self) -> dict[str, object]:
        """将异常转换为结构化的错误字典。

        Returns:
            包含error_type、message和details的字典
        """
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(SSHMCPError):
    """配置错误。

    当SSH_HOST/SSH_USERNAME缺失、未提供任何认证方式、
    私钥文件无法读取或服务器配置非法时抛出。启动阶段出现即退出。

    Attributes:
        key: 出错的配置项名称
    """

    def __init__(
        self,
        message: str,
        *,
        key: str = "",
        details: dict[str, object] | None = None,
    ) -> None:
        merged_details = {"key": key, **(details or {})}
        super().__init__(message, details=merged_details)
        self.key = key


class SSHConnectionError(SSHMCPError):
    """SSH连接错误。

    当SSH握手、认证失败、网络异常或连接超时时抛出。
    失败的连接不会写入会话缓存。

    Attributes:
        host: 目标主机地址
        port: 目标SSH端口
        username: SSH用户名
    """

    def __init__(
        self,
        message: str,
        *,
        host: str = "",
        port: int = 22,
        username: str = "",
        details: dict[str, object] | None = None,
    ) -> None:
        """初始化SSH连接错误。

        Args:
            message: 错误描述信息
            host: 目标主机地址
            port: 目标SSH端口
            username: SSH用户名
            details: 附加错误详情
        """
        merged_details = {"host": host, "port": port, "username": username, **(details or {})}
        super().__init__(message, details=merged_details)
        self.host = host
        self.port = port
        self.username = username


class CommandExecutionError(SSHMCPError):
    """命令执行错误。

    当执行通道无法打开、会话已断开或命令执行超时时抛出。
    远程命令的非零退出码不属于此错误，而是正常结果的一部分。

    Attributes:
        command: 执行失败的命令
    """

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        details: dict[str, object] | None = None,
    ) -> None:
        merged_details = {"command": command, **(details or {})}
        super().__init__(message, details=merged_details)
        self.command = command


class FileAccessError(SSHMCPError):
    """远程文件访问错误。

    当远程文件不存在、权限不足或SFTP子会话失败时抛出。

    Attributes:
        path: 远程文件路径
    """

    def __init__(
        self,
        message: str,
        *,
        path: str = "",
        details: dict[str, object] | None = None,
    ) -> None:
        merged_details = {"path": path, **(details or {})}
        super().__init__(message, details=merged_details)
        self.path = path


class WriteError(SSHMCPError):
    """远程文件写入错误。

    当写入命令返回非零退出码时抛出，携带标准错误输出。

    Attributes:
        path: 远程文件路径
        exit_status: 写入命令退出状态码
        stderr: 标准错误输出
    """

    def __init__(
        self,
        message: str,
        *,
        path: str = "",
        exit_status: int = -1,
        stderr: str = "",
        details: dict[str, object] | None = None,
    ) -> None:
        merged_details = {
            "path": path,
            "exit_status": exit_status,
            "stderr": stderr,
            **(details or {}),
        }
        super().__init__(message, details=merged_details)
        self.path = path
        self.exit_status = exit_status
        self.stderr = stderr


class FileTransferError(SSHMCPError):
    """文件传输错误。

    当上传/下载过程中本地或远程任一端的流出错时抛出。

    Attributes:
        local_path: 本地文件路径
        remote_path: 远程文件路径
    """

    def __init__(
        self,
        message: str,
        *,
        local_path: str = "",
        remote_path: str = "",
        details: dict[str, object] | None = None,
    ) -> None:
        """初始化文件传输错误。

        Args:
            message: 错误描述信息
            local_path: 本地文件路径
            remote_path: 远程文件路径
            details: 附加错误详情
        """
        merged_details = {
            "local_path": local_path,
            "remote_path": remote_path,
            **(details or {}),
        }
        super().__init__(message, details=merged_details)
        self.local_path = local_path
        self.remote_path = remote_path


TransferError = FileTransferError


class ValidationError(SSHMCPError):
    """参数校验错误。

    当必填参数缺失、为空或取值非法时抛出。此时不会发起任何远程调用。

    Attributes:
        operation: 工具名称
        argument: 出错的参数名
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        argument: str = "",
        details: dict[str, object] | None = None,
    ) -> None:
        merged_details = {"operation": operation, "argument": argument, **(details or {})}
        super().__init__(message, details=merged_details)
        self.operation = operation
        self.argument = argument


class UnknownOperationError(SSHMCPError):
    """未知操作错误。

    当工具名或资源名不在支持列表中时抛出。

    Attributes:
        name: 请求的工具或资源名称
    """

    def __init__(
        self,
        message: str,
        *,
        name: str = "",
        details: dict[str, object] | None = None,
    ) -> None:
        merged_details = {"name": name, **(details or {})}
        super().__init__(message, details=merged_details)
        self.name = name
