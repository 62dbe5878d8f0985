import signal
import sys

from loguru import logger

from linux_server_mcp.config_manager import ConfigManager
from linux_server_mcp.exceptions import ConfigurationError
from linux_server_mcp.logger import setup_logger
from linux_server_mcp.mcp_server import create_mcp_server, run_stdio_server


def _handle_sigterm(_signum, _frame) -> None:
    raise KeyboardInterrupt


def main() -> int:
    """
    Linux Server MCP 服务器主入口

    返回值即进程退出码：正常结束或被信号终止为0，启动失败为1。
    """
    # 1. 加载配置
    try:
        config_manager = ConfigManager.load()
    except ConfigurationError as e:
        print(f"启动失败: {e.message}", file=sys.stderr)
        return 1

    # 2. 设置日志
    setup_logger(config_manager.settings)

    # 3. 校验目标主机凭据，缺失时直接退出
    resolver = config_manager.credential_resolver()
    try:
        descriptor = resolver.resolve()
    except ConfigurationError as e:
        logger.error("启动失败: {}", e.message)
        print(f"启动失败: {e.message}", file=sys.stderr)
        return 1

    # 4. 创建 MCP 服务器
    mcp = create_mcp_server(settings=config_manager.settings, resolver=resolver)
    logger.info(
        "Linux服务器MCP服务已启动: {}@{}:{}",
        descriptor.username,
        descriptor.host,
        descriptor.port,
    )

    # 5. stdio 运行，SIGTERM 与 SIGINT 同样按正常退出处理
    signal.signal(signal.SIGTERM, _handle_sigterm)
    try:
        run_stdio_server(mcp)
    except KeyboardInterrupt:
        logger.info("服务器已停止")
    return 0


if __name__ == "__main__":
    sys.exit(main())
