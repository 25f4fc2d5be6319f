"""njfu_lib 使用的异常类型。"""

from typing import Iterable


class LibraryError(Exception):
    """本包所有异常的基类。str(err) 即可读的失败原因。"""

    @property
    def reason(self) -> str:
        return str(self)


class ConfigError(LibraryError):
    """缺少凭据或配置值非法。"""


class AuthError(LibraryError):
    """认证失败。调用方应将其视为"服务暂不可用", 而非输入错误。"""


class TransportFailure(AuthError):
    """网络层失败 (连接、DNS、TLS、超时)。"""


class ProtocolFailure(AuthError):
    """状态码异常, 或响应中缺少预期的头/字段。"""


class FormParseError(ProtocolFailure):
    """登录页缺少必需的隐藏字段, 通常意味着页面结构已变化。"""

    def __init__(self, missing: Iterable[str], message: str = "解析登录表单失败"):
        self.missing = tuple(missing)
        if self.missing:
            message = f"{message}: 缺少 {', '.join(self.missing)}"
        super().__init__(message)


class CredentialRejected(AuthError):
    """服务器明确拒绝了凭据 (或图书馆登录重试耗尽)。"""


class CryptoFailure(AuthError):
    """密钥导入或加密原语出错, 与密码错误区分开。"""


class QueryError(LibraryError):
    """座位/流量查询失败 (与认证无关)。"""
