"""默认值与固定诊断命令表"""
from __future__ import annotations

from linux_server_mcp.types import MonitorKind, ResourceName

DEFAULT_SSH_PORT = 22
DEFAULT_LIST_PATH = "."
DEFAULT_MONITOR_KIND: MonitorKind = "all"
DEFAULT_CHUNK_SIZE = 32768

# 监控类型 -> 诊断命令（按输出顺序）
MONITOR_COMMANDS: dict[MonitorKind, tuple[str, ...]] = {
    "cpu": ("top -bn1 | head -20",),
    "memory": ("free -h", "cat /proc/meminfo | head -10"),
    "disk": ("df -h", "lsblk"),
    "network": ("netstat -tuln", "ss -tuln"),
    "all": (
        "uptime",
        "free -h",
        "df -h",
        "top -bn1 | head -10",
        "netstat -tuln | head -10",
    ),
}

# 资源路径 -> (诊断命令, JSON字段名)
RESOURCE_COMMANDS: dict[ResourceName, tuple[str, str]] = {
    "system/info": ("uname -a && cat /etc/os-release", "system_info"),
    "system/processes": ("ps aux --sort=-%cpu | head -20", "processes"),
    "system/disk": ("df -h", "disk_usage"),
    "system/memory": ("free -h && cat /proc/meminfo | head -10", "memory_info"),
}

RESOURCE_URI_SCHEME = "linux://"
