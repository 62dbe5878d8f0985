"""日志配置模块

stdout 承载MCP协议帧，日志只能写到 stderr 或文件：
- stderr：仅在交互终端下启用
- app.log：全部日志，按大小轮转
- error.log：ERROR 及以上
所有记录在落盘前统一脱敏（口令、令牌、私钥块）。
"""
from __future__ import annotations

import re
import sys
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from loguru import logger

from linux_server_mcp.settings import SSHMCPSettings

_SECRET_ASSIGNMENT = re.compile(r"(?i)(password|passwd|passphrase|token)(\s*[:=]\s*)\S+")
_PRIVATE_KEY_BLOCK = re.compile(
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----",
    re.S,
)

_FALLBACK_LOG_DIR = "linux-server-mcp-logs"


def redact(text: str) -> str:
    """屏蔽文本中的口令与私钥内容。"""
    masked = _PRIVATE_KEY_BLOCK.sub("<private key>", text)
    return _SECRET_ASSIGNMENT.sub(r"\1\2***", masked)


def _redact_record(record: Any) -> None:
    record["message"] = redact(record.get("message", ""))


def _resolve_log_dir(preferred: Path) -> Path:
    try:
        preferred.mkdir(parents=True, exist_ok=True)
        return preferred
    except OSError:
        fallback = Path(gettempdir()) / _FALLBACK_LOG_DIR
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


def setup_logger(settings: SSHMCPSettings) -> None:
    """按配置重建全部日志输出。

    Args:
        settings: 服务器配置（日志级别、目录、轮转与保留策略）
    """
    log_dir = _resolve_log_dir(Path(settings.log_dir))

    logger.remove()
    logger.configure(patcher=_redact_record)

    common: dict[str, Any] = {"enqueue": True, "backtrace": False, "diagnose": False}

    if getattr(sys.stderr, "isatty", lambda: False)():
        logger.add(sys.stderr, level=settings.log_level, colorize=True, **common)

    for filename, level in (("app.log", settings.log_level), ("error.log", "ERROR")):
        logger.add(
            str(log_dir / filename),
            level=level,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            encoding="utf-8",
            **common,
        )
