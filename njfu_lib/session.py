"""
认证完成后的会话。

Session 由 SessionCache 独占持有。构造后只有 proxy_ticket 会变化:
WebVPN 可能在任意响应里轮换 my_client_ticket, 此时用 absorb_ticket 原地更新。
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict

import httpx

from .client import extract_proxy_ticket, proxy_cookie, send
from .config import JSON_ACCEPT, LIB_VPN_PARAM, date_string, lib_url
from .errors import AuthError

logger = logging.getLogger(__name__)

RESV_INFO_URL = lib_url("ic-web/reserve/resvInfo")


@dataclass(eq=False)
class Session:
    proxy_ticket: str
    booking_token: str = field(repr=False)
    account_number: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        for name in ("proxy_ticket", "booking_token", "account_number"):
            if not getattr(self, name):
                raise ValueError(f"Session.{name} must not be empty")

    def absorb_ticket(self, response: httpx.Response) -> bool:
        """响应中带有新的 my_client_ticket 时更新, 返回是否发生了轮换"""
        ticket = extract_proxy_ticket(response)
        if ticket and ticket != self.proxy_ticket:
            self.proxy_ticket = ticket
            logger.info("会话的 my_client_ticket 已轮换")
            return True
        return False

    def auth_headers(self) -> Dict[str, str]:
        """调用预约系统接口所需的请求头"""
        return {
            **proxy_cookie(self.proxy_ticket),
            "token": self.booking_token,
            "lan": "1",
            "Accept": JSON_ACCEPT,
        }


async def check_session(client: httpx.AsyncClient, session: Session) -> bool:
    """
    用"今日预约状态"查询检查会话是否仍然有效。

    只有接口返回 2xx 且 code == 0 时才算有效; 网络错误、解析错误一律返回 False,
    不会抛出异常。
    """
    today = date_string(0)
    params = {
        LIB_VPN_PARAM: "",
        "needStatus": "8454",
        "unneedStatus": "128",
        "beginDate": today,
        "endDate": today,
    }
    try:
        response = await send(client, "GET", RESV_INFO_URL, params=params, headers=session.auth_headers())
    except AuthError as e:
        logger.warning(f"验证认证有效性时出错: {e}")
        return False

    session.absorb_ticket(response)
    if not response.is_success:
        logger.info(f"会话校验失败, 状态码 {response.status_code}")
        return False

    try:
        result = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"会话校验响应无法解析: {e}")
        return False

    valid = isinstance(result, dict) and result.get("code") == 0
    if not valid:
        logger.info(f"会话已失效: {result.get('message') if isinstance(result, dict) else result}")
    return valid
