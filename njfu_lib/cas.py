import logging
import urllib.parse
from typing import Optional

import httpx

from .cipher import encrypt_cas_password
from .client import extract_proxy_ticket, mask, proxy_cookie, send
from .config import VPN_CAS_CALLBACK_URL, VPN_LOGIN_URL, edu_url
from .errors import CredentialRejected, ProtocolFailure
from .form import extract_form_fields

logger = logging.getLogger(__name__)

# 提交表单后, 这些状态码表示 CAS 重新渲染了登录页 (账号或密码错误)
_REJECTED_STATUSES = frozenset({200, 401})


def extract_cas_ticket(location: Optional[str]) -> str:
    """从 302 的 Location 中解析 ticket 参数"""
    if not location:
        raise ProtocolFailure("未获取到重定向地址")

    # ticket 原样转发给 WebVPN, 不做 URL 解码
    query = urllib.parse.urlsplit(location).query
    for part in query.split("&"):
        name, _, value = part.partition("=")
        if name == "ticket" and value:
            return value
    raise ProtocolFailure("未获取到ticket")


class CasExchange:
    """
    第一级认证: WebVPN + 统一身份认证 (CAS)。

    流程 (单次执行, 不重试):
    1. 访问 WebVPN 登录入口, 取得 my_client_ticket
    2. 携带 ticket 打开 CAS 登录页
    3. 解析表单隐藏字段
    4. AES 加密密码并提交表单 (不跟随重定向)
    5. 从 302 的 Location 中取出 CAS ticket
    6. 访问 WebVPN 回调地址完成登录, ticket 可能在此被轮换

    任一步失败都直接抛出对应的 AuthError 子类。
    """

    SERVICE_URL = VPN_CAS_CALLBACK_URL
    PREPARE_URL = edu_url(
        "authserver/login?service=" + urllib.parse.quote(VPN_CAS_CALLBACK_URL, safe="")
    )
    SUBMIT_URL = edu_url(
        "authserver/login?vpn-0&service=" + urllib.parse.quote(VPN_CAS_CALLBACK_URL, safe="")
    )

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def login(self, username: str, password: str) -> str:
        """
        执行完整的第一级认证。

        返回:
            str: (可能已轮换的) my_client_ticket.
        """
        logger.info("--- [步骤 1] 开始 CAS 统一认证 ---")

        ticket = await self._acquire_proxy_ticket()
        html = await self._fetch_login_page(ticket)

        logger.info("1.3 解析登录表单")
        fields = extract_form_fields(html)

        logger.info("1.4 加密密码并提交登录表单")
        encrypted_password = encrypt_cas_password(password, fields.salt)
        form_data = {
            "vpn-0": "",
            "service": self.SERVICE_URL,
            "username": username,
            "password": encrypted_password,
            "lt": fields.lt,
            "dllt": fields.dllt,
            "execution": fields.execution,
            "_eventId": fields.event_id,
            "rmShown": fields.rm_shown,
        }
        response = await self._send(
            "POST", self.SUBMIT_URL,
            headers=proxy_cookie(ticket),
            data=form_data,
            follow_redirects=False,
        )

        if response.status_code in _REJECTED_STATUSES:
            logger.error(f"CAS 拒绝登录, 状态码 {response.status_code}")
            raise CredentialRejected("统一认证密码错误")
        if response.status_code != 302:
            raise ProtocolFailure(f"提交登录表单返回异常状态码: {response.status_code}")

        cas_ticket = extract_cas_ticket(response.headers.get("Location"))
        logger.info(f"1.5 获得 CAS ticket: {mask(cas_ticket)}")

        return await self._finalize(ticket, cas_ticket)

    async def _acquire_proxy_ticket(self) -> str:
        logger.info(f"1.1 访问 WebVPN 登录入口: {VPN_LOGIN_URL}")
        response = await self._send("GET", VPN_LOGIN_URL)
        ticket = extract_proxy_ticket(response) if response.is_success else None
        if not ticket:
            logger.error(f"未能获取 my_client_ticket, 状态码 {response.status_code}")
            raise ProtocolFailure("无法获取初始ticket")
        logger.debug(f"初始 ticket: {mask(ticket)}")
        return ticket

    async def _fetch_login_page(self, ticket: str) -> str:
        logger.info("1.2 打开统一认证登录页")
        response = await self._send("GET", self.PREPARE_URL, headers=proxy_cookie(ticket))
        if not response.is_success:
            logger.error(f"登录页请求失败, 状态码 {response.status_code}")
            raise ProtocolFailure("准备登录失败")
        return response.text

    async def _finalize(self, ticket: str, cas_ticket: str) -> str:
        logger.info("1.6 使用 CAS ticket 完成 WebVPN 登录")
        response = await self._send(
            "GET", f"{self.SERVICE_URL}?ticket={cas_ticket}",
            headers=proxy_cookie(ticket),
        )
        if not response.is_success:
            logger.error(f"WebVPN 回调失败, 状态码 {response.status_code}")
            raise ProtocolFailure("最终认证失败")

        rotated = extract_proxy_ticket(response)
        if rotated and rotated != ticket:
            logger.info("WebVPN 已轮换 my_client_ticket")
            ticket = rotated

        logger.info("第一级认证成功")
        return ticket

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        return await send(self._client, method, url, **kwargs)
