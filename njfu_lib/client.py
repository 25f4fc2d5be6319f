import logging
import re
from typing import Dict, Optional

import httpx

from .config import DEFAULT_HEADERS, DEFAULT_TIMEOUT, PROXY_TICKET_COOKIE
from .errors import TransportFailure

logger = logging.getLogger(__name__)

_TICKET_PATTERN = re.compile(rf"{PROXY_TICKET_COOKIE}=([^;]+)")


def create_client(timeout: float = DEFAULT_TIMEOUT,
                  trust_env: bool = True,
                  transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    创建带浏览器请求头的 httpx.AsyncClient。

    my_client_ticket 由调用方通过 Cookie 头显式携带, 不依赖 client 的 cookie 罐。
    需要检查 302 的请求在调用处单独关闭 follow_redirects。
    """
    return httpx.AsyncClient(
        headers=DEFAULT_HEADERS,
        timeout=timeout,
        trust_env=trust_env,
        follow_redirects=True,
        transport=transport,
    )


def proxy_cookie(ticket: str) -> Dict[str, str]:
    """携带 WebVPN ticket 的 Cookie 请求头"""
    return {"Cookie": f"{PROXY_TICKET_COOKIE}={ticket}"}


def extract_proxy_ticket(response: httpx.Response) -> Optional[str]:
    """
    从响应 (含重定向链) 的 Set-Cookie 中取出 my_client_ticket。
    多个响应都下发时以最后一个为准; 没有则返回 None。
    """
    ticket = None
    for resp in (*response.history, response):
        for header in resp.headers.get_list("set-cookie"):
            match = _TICKET_PATTERN.search(header)
            if match:
                ticket = match.group(1)
    return ticket


async def send(client: httpx.AsyncClient, method: str, url: str, **kwargs) -> httpx.Response:
    """发送请求, 把 httpx 的网络层异常转换为 TransportFailure"""
    try:
        return await client.request(method, url, **kwargs)
    except httpx.RequestError as e:
        logger.warning(f"请求 {method} {url} 失败: {e!r}")
        raise TransportFailure(f"网络请求失败: {e}") from e


def mask(secret: Optional[str], keep: int = 6) -> str:
    """日志中只显示凭据前几位"""
    if not secret:
        return "<empty>"
    return f"{secret[:keep]}..." if len(secret) > keep else "***"
