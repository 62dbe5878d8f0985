"""SSH会话管理模块

提供所有远程操作共用的会话获取入口：
- 每次调用重新解析凭据并计算会话键
- 缓存命中直接复用，已失效的会话先剔除再重建
- 同一会话键的并发首次建立合并为一次 open（在途连接表）
- 建立失败不会写入缓存，后续调用可重新尝试
- 进程退出时尽力关闭全部会话
"""
from __future__ import annotations

import asyncio

from loguru import logger

from linux_server_mcp.credentials import ConnectionDescriptor, CredentialResolver
from linux_server_mcp.session_cache import Session, SessionCache, SessionKey
from linux_server_mcp.session_factory import SessionFactory


def _consume_result(future: asyncio.Future[Session]) -> None:
    # 所有等待者都已取消时，失败结果由这里取走
    if not future.cancelled():
        future.exception()


class SessionManager:
    """会话获取与生命周期管理。

    Attributes:
        cache: 会话缓存
    """

    def __init__(
        self,
        *,
        resolver: CredentialResolver,
        cache: SessionCache,
        factory: SessionFactory,
    ) -> None:
        """初始化会话管理器。

        Args:
            resolver: 凭据解析器
            cache: 会话缓存
            factory: 会话工厂
        """
        self._resolver = resolver
        self.cache = cache
        self._factory = factory
        self._pending_opens: dict[SessionKey, asyncio.Future[Session]] = {}

    async def acquire_session(self) -> Session:
        """获取当前目标主机的会话。

        Returns:
            已认证的SSH会话

        Raises:
            ConfigurationError: 凭据解析失败时抛出
            SSHConnectionError: 会话建立失败时抛出
        """
        descriptor = self._resolver.resolve()
        key = SessionKey.from_descriptor(descriptor)

        session = self.cache.get(key)
        if session is not None:
            if not self.is_session_dead(session):
                return session
            logger.warning("会话已断开，重新建立: {}", key)
            self.cache.remove(key)
            await self._close_quietly(session)

        # 检查与登记之间没有 await，单事件循环内是原子的
        pending = self._pending_opens.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._open_and_store(key, descriptor))
            pending.add_done_callback(_consume_result)
            self._pending_opens[key] = pending
        else:
            logger.debug("等待在途的会话建立: {}", key)

        return await asyncio.shield(pending)

    async def _open_and_store(
        self, key: SessionKey, descriptor: ConnectionDescriptor
    ) -> Session:
        try:
            session = await self._factory.open(descriptor)
            self.cache.put(key, session)
            return session
        finally:
            self._pending_opens.pop(key, None)

    async def discard(self, session: Session) -> None:
        """剔除并关闭一个已确认不可用的会话。"""
        key = self.cache.find_key(session)
        if key is not None:
            self.cache.remove(key)
            logger.warning("会话不可用，已从缓存移除: {}", key)
        await self._close_quietly(session)

    async def close_all(self) -> None:
        """关闭全部会话，忽略关闭过程中的异常。"""
        for pending in list(self._pending_opens.values()):
            pending.cancel()
        self._pending_opens.clear()

        sessions = self.cache.drain()
        await asyncio.gather(
            *[self._close_quietly(s) for s in sessions],
            return_exceptions=True,
        )
        if sessions:
            logger.info("已关闭 {} 个SSH会话", len(sessions))

    @staticmethod
    def is_session_dead(session: Session) -> bool:
        try:
            closed = getattr(session, "is_closed", None)
            if closed is not None:
                return bool(closed() if callable(closed) else closed)
        except Exception:
            return True
        return False

    @staticmethod
    async def _close_quietly(session: Session) -> None:
        try:
            session.close()
            await session.wait_closed()
        except Exception:
            return
