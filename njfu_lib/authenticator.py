import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from .booking import BookingExchange
from .cas import CasExchange
from .client import mask
from .config import Credentials, Settings
from .session import Session, check_session

logger = logging.getLogger(__name__)


class LibraryAuthenticator:
    """
    图书馆认证器: 依次执行两级认证并组装 Session。

    使用方法:
    async with create_client() as client:
        auth = LibraryAuthenticator(client, credentials)
        session = await auth.authenticate()
        await auth.is_valid(session)
    """

    def __init__(self,
                 client: httpx.AsyncClient,
                 credentials: Credentials,
                 cas: Optional[CasExchange] = None,
                 booking: Optional[BookingExchange] = None):
        self._client = client
        self._credentials = credentials
        self._cas = cas or CasExchange(client)
        self._booking = booking or BookingExchange(client)

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "LibraryAuthenticator":
        booking = BookingExchange(
            client,
            max_attempts=settings.max_attempts,
            retry_delay=settings.retry_delay,
        )
        return cls(client, settings.credentials, booking=booking)

    async def authenticate(self) -> Session:
        """
        完整认证流程。第一级失败时不会尝试第二级, 异常原样抛出。

        返回:
            Session: 三项凭据均非空的会话.

        异常:
            AuthError: 任一级认证失败.
        """
        username = self._credentials.username
        logger.info(f"开始认证账号 {username}")

        proxy_ticket = await self._cas.login(username, self._credentials.cas_password)
        booking = await self._booking.login(proxy_ticket, username, self._credentials.booking_password)

        session = Session(
            proxy_ticket=proxy_ticket,
            booking_token=booking.token,
            account_number=booking.account_number,
            created_at=datetime.now(timezone.utc),
        )
        logger.info(f"--- 认证成功 (ticket={mask(proxy_ticket)}, accNo={session.account_number}) ---")
        return session

    async def is_valid(self, session: Session) -> bool:
        return await check_session(self._client, session)
