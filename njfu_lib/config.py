import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Mapping, Optional

from .errors import ConfigError

# ----------------------------------------------------------------------
# WebVPN 地址配置
# 所有内网系统都通过 webvpn.njfu.edu.cn 代理访问, 路径中的长段是 WebVPN
# 对内网主机地址的编码, 抓包得到, 不要手改。
# ----------------------------------------------------------------------
WEBVPN_HOST = "https://webvpn.njfu.edu.cn"
BASE_URL_PREFIX = f"{WEBVPN_HOST}/webvpn/LjIwMS4xNjkuMjE4LjE2OC4xNjc="
LIB_URL_SUFFIX = "/LjIwNS4xNTguMjAwLjE3MS4xNTMuMTUwLjIxNi45Ny4yMTEuMTU2LjE1OC4xNzMuMTQ4LjE1NS4xNTUuMjE3LjEwMC4xNTAuMTY1"
EDU_URL_SUFFIX = "/LjIxNC4xNTguMTk5LjEwMi4xNjIuMTU5LjIwMi4xNjguMTQ3LjE1MS4xNTYuMTczLjE0OC4xNTMuMTY1"

# WebVPN 自身的登录入口 (下发 my_client_ticket) 和 CAS 回调地址
VPN_LOGIN_URL = f"{WEBVPN_HOST}/rump_frontend/login/"
VPN_CAS_CALLBACK_URL = f"{WEBVPN_HOST}/rump_frontend/loginFromCas/"

# 在馆人数页面
TRAFFIC_URL = (
    f"{WEBVPN_HOST}/webvpn/LjIwMS4xNjkuMjE4LjE2OA=="
    "/LjE0Ny4xMDEuMTUyLjEwMi4xMDEuMTAyLjE1Ny45Ny4xNTEuOTkuMTA0LjEwMi4xNTIuMTEyLjExMS4xNTM="
    "/book/view"
)

# 预约系统接口需要携带的 WebVPN 路由参数
LIB_VPN_PARAM = "vpn-12-libseat.njfu.edu.cn"

PROXY_TICKET_COOKIE = "my_client_ticket"

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/135.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
}
JSON_ACCEPT = "application/json, text/plain, */*"

BEIJING_TZ = timezone(timedelta(hours=8))

DEFAULT_TIMEOUT = 10.0
DEFAULT_SESSION_TTL = timedelta(minutes=30)
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0

# 环境变量名
ENV_USERNAME = "USERNAME"
ENV_EDU_PASSWORD = "EDU_PASSWORD"
ENV_LIB_PASSWORD = "LIB_PASSWORD"


def lib_url(path: str) -> str:
    """图书馆预约系统 (ic-web) 的代理地址"""
    return f"{BASE_URL_PREFIX}{LIB_URL_SUFFIX}/{path}"


def edu_url(path: str) -> str:
    """统一身份认证 (authserver) 的代理地址"""
    return f"{BASE_URL_PREFIX}{EDU_URL_SUFFIX}/{path}"


def date_string(days_offset: int = 0, now: Optional[datetime] = None) -> str:
    """北京时间的 YYYYMMDD 日期串"""
    now = now or datetime.now(BEIJING_TZ)
    return (now.astimezone(BEIJING_TZ) + timedelta(days=days_offset)).strftime("%Y%m%d")


@dataclass(frozen=True)
class Credentials:
    """
    一个账号的三项凭据。

    学号同时用于统一认证和图书馆系统, 两个系统的密码可能不同。
    """
    username: str
    cas_password: str = field(repr=False)
    booking_password: str = field(repr=False)


@dataclass(frozen=True)
class Settings:
    credentials: Credentials
    timeout: float = DEFAULT_TIMEOUT
    session_ttl: timedelta = DEFAULT_SESSION_TTL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY

    @classmethod
    def from_env(cls,
                 environ: Optional[Mapping[str, str]] = None,
                 overrides: Optional[Dict[str, Optional[str]]] = None,
                 **kwargs) -> "Settings":
        """
        从环境变量读取账号配置。

        参数:
            environ: 环境变量表, 默认 os.environ.
            overrides: 命令行传入的值 (键为环境变量名), 非空时优先于环境变量.
            kwargs: 其余 Settings 字段.

        异常:
            ConfigError: 缺少任意一项凭据.
        """
        environ = os.environ if environ is None else environ
        overrides = overrides or {}

        values: Dict[str, str] = {}
        missing: List[str] = []
        for name in (ENV_USERNAME, ENV_EDU_PASSWORD, ENV_LIB_PASSWORD):
            value = overrides.get(name) or environ.get(name, "")
            if not value:
                missing.append(name)
            values[name] = value

        if missing:
            raise ConfigError(f"缺少必要的环境变量：{', '.join(missing)}")

        credentials = Credentials(
            username=values[ENV_USERNAME],
            cas_password=values[ENV_EDU_PASSWORD],
            booking_password=values[ENV_LIB_PASSWORD],
        )
        return cls(credentials=credentials, **kwargs)
