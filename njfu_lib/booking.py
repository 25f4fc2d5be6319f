import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .cipher import encrypt_booking_password
from .client import mask, proxy_cookie, send
from .config import (DEFAULT_MAX_ATTEMPTS, DEFAULT_RETRY_DELAY, JSON_ACCEPT,
                     LIB_VPN_PARAM, lib_url)
from .errors import AuthError, CredentialRejected, ProtocolFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublicKeyMaterial:
    """一次登录尝试用的公钥和 nonce, 用完即弃"""
    public_key: str
    nonce: str


@dataclass(frozen=True)
class BookingCredentials:
    token: str
    account_number: str


def _json_or_none(response: httpx.Response) -> Optional[Dict[str, Any]]:
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


class BookingExchange:
    """
    第二级认证: 图书馆座位预约系统 (ic-web)。

    每次尝试都重新获取公钥和 nonce, 失败后等待 retry_delay 秒再试,
    最多 max_attempts 次。重试耗尽后无法区分"服务器暂时不可用"和
    "密码错误", 统一抛出 CredentialRejected。
    """

    PUBLIC_KEY_URL = lib_url(f"ic-web/login/publicKey?{LIB_VPN_PARAM}")
    LOGIN_URL = lib_url(f"ic-web/login/user?{LIB_VPN_PARAM}")

    # ic-web 固定的登录参数
    CONSOLE_TYPE = 16

    def __init__(self,
                 client: httpx.AsyncClient,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 retry_delay: float = DEFAULT_RETRY_DELAY,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._client = client
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep

    async def login(self, proxy_ticket: str, username: str, password: str) -> BookingCredentials:
        """
        执行第二级认证。

        参数:
            proxy_ticket (str): 第一级认证得到的 my_client_ticket.
            username (str): 学号.
            password (str): 图书馆系统密码.

        返回:
            BookingCredentials: token 和 accNo.

        异常:
            ProtocolFailure: 缺少 proxy_ticket.
            CredentialRejected: 所有尝试均失败.
        """
        if not proxy_ticket:
            raise ProtocolFailure("缺少client ticket")

        logger.info("--- [步骤 2] 开始图书馆系统认证 ---")
        for attempt in range(1, self.max_attempts + 1):
            logger.info(f"第二级认证: 尝试第 {attempt} 次")
            try:
                result = await self._attempt(proxy_ticket, username, password)
            except AuthError as e:
                logger.warning(f"第二级认证第 {attempt} 次失败: {e}")
            else:
                logger.info(f"第二级认证成功, accNo={result.account_number}")
                return result

            if attempt < self.max_attempts:
                await self._sleep(self.retry_delay)

        logger.error(f"第二级认证在 {self.max_attempts} 次尝试后仍失败")
        raise CredentialRejected("图书馆密码错误或认证失败")

    async def fetch_public_key(self, proxy_ticket: str) -> PublicKeyMaterial:
        """获取 RSA 公钥和 nonce, 响应异常时抛出 ProtocolFailure"""
        response = await self._send(
            "GET", self.PUBLIC_KEY_URL,
            headers={**proxy_cookie(proxy_ticket), "Accept": JSON_ACCEPT},
        )
        if not response.is_success:
            raise ProtocolFailure(f"获取公钥失败, 状态码 {response.status_code}")

        data = _json_or_none(response)
        if data is None or data.get("code") != 0:
            raise ProtocolFailure("获取公钥失败, 响应格式错误")

        payload = data.get("data")
        if not isinstance(payload, dict):
            raise ProtocolFailure("公钥响应中缺少 data 对象")
        public_key = payload.get("publicKey")
        nonce = payload.get("nonceStr")
        if not (isinstance(public_key, str) and public_key and isinstance(nonce, str) and nonce):
            raise ProtocolFailure("公钥响应中缺少 publicKey 或 nonceStr")
        return PublicKeyMaterial(public_key=public_key, nonce=nonce)

    async def _attempt(self, proxy_ticket: str, username: str, password: str) -> BookingCredentials:
        material = await self.fetch_public_key(proxy_ticket)
        encrypted_password = encrypt_booking_password(password, material.nonce, material.public_key)

        payload = {
            "logonName": username,
            "password": encrypted_password,
            "captcha": "",
            "consoleType": self.CONSOLE_TYPE,
            "privacy": True,
        }
        response = await self._send(
            "POST", self.LOGIN_URL,
            json=payload,
            headers={
                **proxy_cookie(proxy_ticket),
                "Accept": JSON_ACCEPT,
                "Content-Type": "application/json;charset=UTF-8",
            },
        )
        if not response.is_success:
            raise ProtocolFailure(f"登录请求失败, 状态码 {response.status_code}")

        result = _json_or_none(response)
        if result is None:
            raise ProtocolFailure("登录响应不是有效的 JSON")
        if result.get("code") != 0:
            raise ProtocolFailure(f"登录失败: code={result.get('code')} message={result.get('message')}")

        data = result.get("data")
        if not isinstance(data, dict):
            raise ProtocolFailure("登录响应中缺少 data 对象")
        token = data.get("token")
        acc_no = data.get("accNo")
        if not isinstance(token, str) or not token or acc_no in (None, ""):
            raise ProtocolFailure("登录响应中缺少 token 或 accNo")

        logger.debug(f"获得图书馆 token: {mask(token)}")
        return BookingCredentials(token=token, account_number=str(acc_no))

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        return await send(self._client, method, url, **kwargs)
