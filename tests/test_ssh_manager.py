"""SSHManager 单元测试

使用 FakeSession/FakeProcess 手动控制通道关闭与输出到达的先后顺序，覆盖：
- 命令执行以通道关闭为完成信号
- 非零退出码作为正常结果返回
- 执行通道打开失败与命令超时
- 写文件的注入安全与失败处理
- 目录列表与系统监控的命令与输出顺序
- 系统资源读取
"""
import asyncio

import asyncssh
import pytest

from linux_server_mcp.constants import MONITOR_COMMANDS
from linux_server_mcp.exceptions import (
    CommandExecutionError,
    UnknownOperationError,
    ValidationError,
    WriteError,
)
from linux_server_mcp.settings import SSHMCPSettings
from linux_server_mcp.shell import build_write_command
from linux_server_mcp.ssh_manager import SSHCommandResult, SSHManager

from fakes import CountingFactory, FakeProcess, FakeSession, make_sessions


def _manager(session: FakeSession, **settings) -> tuple[SSHManager, CountingFactory]:
    factory = CountingFactory(session)
    manager = SSHManager(settings=SSHMCPSettings(**settings), sessions=make_sessions(factory))
    return manager, factory


async def _wait_for_commands(session: FakeSession, count: int) -> None:
    for _ in range(200):
        if len(session.commands) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} commands, got {session.commands}")


class TestExecuteCommand:
    """命令执行测试组。"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exit_status", [0, 1, 127])
    async def test_result_after_channel_close(self, exit_status: int) -> None:
        def responder(_command: str, process: FakeProcess) -> None:
            process.finish(stdout=b"hi\n", stderr=b"warn\n", exit_status=exit_status)

        manager, _ = _manager(FakeSession(responder))

        result = await manager.execute_command("echo hi")

        assert result == SSHCommandResult(
            command="echo hi", exit_status=exit_status, stdout="hi\n", stderr="warn\n"
        )

    @pytest.mark.asyncio
    async def test_command_is_stripped(self) -> None:
        session = FakeSession()
        manager, _ = _manager(session)

        await manager.execute_command("  uptime \n")

        assert session.commands == ["uptime"]

    @pytest.mark.asyncio
    async def test_empty_command_is_rejected(self) -> None:
        session = FakeSession()
        manager, factory = _manager(session)

        with pytest.raises(ValidationError):
            await manager.execute_command("   ")

        assert factory.open_calls == 0
        assert session.commands == []

    @pytest.mark.asyncio
    async def test_waits_for_close_not_stream_end(self) -> None:
        session = FakeSession(responder=None)
        manager, _ = _manager(session)

        task = asyncio.ensure_future(manager.execute_command("make"))
        await _wait_for_commands(session, 1)
        process = session.processes["make"]

        process.stdout.feed(b"part1 ")
        process.close_channel(exit_status=2)
        await asyncio.sleep(0)
        # 通道关闭后才到达的尾部输出也要包含在结果中
        process.stdout.feed(b"part2")
        process.stdout.feed_eof()
        process.stderr.feed_eof()

        result = await task

        assert result.stdout == "part1 part2"
        assert result.exit_status == 2
        assert process.close_calls == 1

    @pytest.mark.asyncio
    async def test_missing_exit_status_is_zero(self) -> None:
        def responder(_command: str, process: FakeProcess) -> None:
            process.finish()
            process.exit_status = None

        manager, _ = _manager(FakeSession(responder))

        result = await manager.execute_command("true")

        assert result.exit_status == 0

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_replaced(self) -> None:
        def responder(_command: str, process: FakeProcess) -> None:
            process.finish(stdout=b"ok \xff")

        manager, _ = _manager(FakeSession(responder))

        result = await manager.execute_command("cat bin")

        assert result.stdout == "ok \ufffd"


class TestChannelFailures:
    """执行通道异常测试组。"""

    @pytest.mark.asyncio
    async def test_channel_open_failure(self) -> None:
        session = FakeSession()
        session.open_channel_error = asyncssh.ChannelOpenError(2, "refused")
        manager, _ = _manager(session)

        with pytest.raises(CommandExecutionError, match="无法打开执行通道"):
            await manager.execute_command("ls")

    @pytest.mark.asyncio
    async def test_dead_cached_session_is_replaced(self) -> None:
        dead, fresh = FakeSession(), FakeSession()
        factory = CountingFactory(dead, fresh)
        sessions = make_sessions(factory)
        manager = SSHManager(settings=SSHMCPSettings(), sessions=sessions)

        await sessions.acquire_session()
        dead.open_channel_error = ConnectionResetError("reset by peer")
        dead.closed = True

        # 缓存中的失效会话在获取时就会被替换
        result = await manager.execute_command("uptime")

        assert result.stdout == "out:uptime"
        assert factory.open_calls == 2

    @pytest.mark.asyncio
    async def test_session_dying_mid_open_is_discarded(self) -> None:
        session = FakeSession()
        manager, _ = _manager(session)
        sessions = manager._sessions

        async def dying_create_process(command: str, **kwargs):
            session.closed = True
            raise ConnectionResetError("reset by peer")

        session.create_process = dying_create_process  # type: ignore[method-assign]

        with pytest.raises(CommandExecutionError):
            await manager.execute_command("ls")

        assert len(sessions.cache) == 0
        assert session.closed is True

    @pytest.mark.asyncio
    async def test_timeout_closes_channel(self) -> None:
        session = FakeSession(responder=None)
        manager, _ = _manager(session, command_timeout_seconds=0.05)

        with pytest.raises(CommandExecutionError, match="超时"):
            await manager.execute_command("sleep 100")

        assert session.processes["sleep 100"].close_calls == 1


class TestWriteFile:
    """写文件测试组。"""

    @pytest.mark.asyncio
    async def test_uses_quoted_command(self) -> None:
        session = FakeSession()
        manager, _ = _manager(session)
        content = "a'b $(whoami) `id`\nline2"

        await manager.write_file("/tmp/x y.txt", content)

        assert session.commands == [build_write_command("/tmp/x y.txt", content)]

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_write_error(self) -> None:
        def responder(_command: str, process: FakeProcess) -> None:
            process.finish(stderr=b"sh: /root/x: Permission denied\n", exit_status=1)

        manager, _ = _manager(FakeSession(responder))

        with pytest.raises(WriteError, match="Permission denied") as exc_info:
            await manager.write_file("/root/x", "data")

        assert exc_info.value.exit_status == 1
        assert "Permission denied" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_nul_in_content_is_rejected(self) -> None:
        session = FakeSession()
        manager, _ = _manager(session)

        with pytest.raises(ValidationError):
            await manager.write_file("/tmp/a", "x\x00y")

        assert session.commands == []


class TestListAndMonitor:
    """目录列表与系统监控测试组。"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("detailed", "expected"),
        [(False, "ls -- /var/log"), (True, "ls -la -- /var/log")],
    )
    async def test_list_directory(self, detailed: bool, expected: str) -> None:
        session = FakeSession()
        manager, _ = _manager(session)

        await manager.list_directory("/var/log", detailed=detailed)

        assert session.commands == [expected]

    @pytest.mark.asyncio
    async def test_list_directory_default_path(self) -> None:
        session = FakeSession()
        manager, _ = _manager(session)

        await manager.list_directory()

        assert session.commands == ["ls -- ."]

    @pytest.mark.asyncio
    async def test_monitor_memory_runs_two_commands(self) -> None:
        session = FakeSession()
        manager, _ = _manager(session)

        await manager.monitor("memory")

        assert sorted(session.commands) == sorted(MONITOR_COMMANDS["memory"])

    @pytest.mark.asyncio
    async def test_monitor_output_keeps_table_order(self) -> None:
        session = FakeSession(responder=None)
        manager, _ = _manager(session)
        first, second = MONITOR_COMMANDS["memory"]

        task = asyncio.ensure_future(manager.monitor("memory"))
        await _wait_for_commands(session, 2)
        session.processes[second].finish(stdout=b"B")
        await asyncio.sleep(0)
        session.processes[first].finish(stdout=b"A")

        output = await task

        assert output == f"=== {first} ===\nA\n\n=== {second} ===\nB\n"

    @pytest.mark.asyncio
    async def test_monitor_all_runs_five_commands(self) -> None:
        session = FakeSession()
        manager, factory = _manager(session)

        await manager.monitor("all")

        assert len(session.commands) == 5
        assert factory.open_calls == 1

    @pytest.mark.asyncio
    async def test_monitor_unknown_kind(self) -> None:
        session = FakeSession()
        manager, _ = _manager(session)

        with pytest.raises(ValidationError):
            await manager.monitor("gpu")  # type: ignore[arg-type]

        assert session.commands == []


class TestReadResource:
    """系统资源测试组。"""

    @pytest.mark.asyncio
    async def test_disk_resource(self) -> None:
        def responder(_command: str, process: FakeProcess) -> None:
            process.finish(stdout=b"/dev/sda1 50%\n")

        session = FakeSession(responder)
        manager, _ = _manager(session)

        payload = await manager.read_resource("system/disk")

        assert session.commands == ["df -h"]
        assert payload["disk_usage"] == "/dev/sda1 50%\n"
        assert "timestamp" in payload

    @pytest.mark.asyncio
    async def test_unknown_resource(self) -> None:
        manager, _ = _manager(FakeSession())

        with pytest.raises(UnknownOperationError):
            await manager.read_resource("system/gpu")  # type: ignore[arg-type]
