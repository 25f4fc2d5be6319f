"""
进程内的会话缓存。

缓存最多持有一个 Session。复用条件: 距上次成功构建不足 TTL, 且在线校验通过;
否则重新认证。认证失败时保持原状态不变, 旧会话只会被下一次成功的认证替换。
"""

import asyncio
import logging
import time
from datetime import timedelta
from typing import Callable, Optional, Protocol, Union

from .config import DEFAULT_SESSION_TTL
from .session import Session

logger = logging.getLogger(__name__)


class Authenticator(Protocol):
    async def authenticate(self) -> Session: ...

    async def is_valid(self, session: Session) -> bool: ...


class SessionCache:

    def __init__(self,
                 authenticator: Authenticator,
                 ttl: Union[timedelta, float] = DEFAULT_SESSION_TTL,
                 clock: Callable[[], float] = time.monotonic):
        self._authenticator = authenticator
        self.ttl = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
        self._clock = clock
        # 同一时刻只允许一个协程重建会话
        self._lock = asyncio.Lock()
        self.current_session: Optional[Session] = None
        self.last_built_at: Optional[float] = None

    def reset(self) -> None:
        self.current_session = None
        self.last_built_at = None

    def _is_fresh(self, now: float) -> bool:
        return self.last_built_at is not None and now - self.last_built_at < self.ttl

    async def get_or_create(self) -> Session:
        """
        返回可用的 Session, 必要时重新认证。

        异常:
            AuthError: 重新认证失败 (缓存状态不变).
        """
        async with self._lock:
            session = self.current_session
            if session is not None and self._is_fresh(self._clock()):
                if await self._authenticator.is_valid(session):
                    logger.info("使用缓存的会话")
                    return session
                logger.info("缓存的会话已失效, 重新认证")
            elif session is not None:
                logger.info("缓存的会话已过期, 重新认证")
            else:
                logger.info("创建新的会话")

            session = await self._authenticator.authenticate()
            self.current_session = session
            self.last_built_at = self._clock()
            return session

    get_session = get_or_create
