"""
Linux Server MCP 远程服务器操作工具

基于 MCP 协议的远程Linux服务器网关：通过单个缓存的SSH会话执行命令、
读写与传输文件、浏览目录、采集系统监控信息。
"""

__version__ = "0.1.0"

__all__ = [
    "config_manager",
    "constants",
    "credentials",
    "dispatcher",
    "exceptions",
    "file_transfer_manager",
    "logger",
    "mcp_server",
    "session_cache",
    "session_factory",
    "session_manager",
    "settings",
    "shell",
    "ssh_manager",
    "types",
]
