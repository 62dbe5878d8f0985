from __future__ import annotations

from typing import Literal, TypedDict

OperationName = Literal[
    "execute_command",
    "read_file",
    "write_file",
    "upload_file",
    "download_file",
    "list_directory",
    "system_monitor",
]
MonitorKind = Literal["cpu", "memory", "disk", "network", "all"]
ResourceName = Literal["system/info", "system/processes", "system/disk", "system/memory"]


class CommandResultDict(TypedDict):
    command: str
    exit_status: int
    stdout: str
    stderr: str


class TransferResultDict(TypedDict):
    local_path: str
    remote_path: str
    bytes_transferred: int


class ErrorDict(TypedDict):
    error_type: str
    message: str
    details: dict[str, object]


class OperationResponseDict(TypedDict):
    text: str
    is_error: bool
    error: ErrorDict | None
