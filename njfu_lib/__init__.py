"""南京林业大学图书馆座位与流量查询客户端 (经 WebVPN 两级认证)。"""

from .authenticator import LibraryAuthenticator
from .cache import SessionCache
from .client import create_client
from .config import Credentials, Settings
from .errors import (AuthError, ConfigError, CredentialRejected, CryptoFailure,
                     FormParseError, LibraryError, ProtocolFailure, QueryError,
                     TransportFailure)
from .session import Session

__version__ = "1.0.0"

__all__ = [
    "AuthError",
    "ConfigError",
    "CredentialRejected",
    "Credentials",
    "CryptoFailure",
    "FormParseError",
    "LibraryAuthenticator",
    "LibraryError",
    "ProtocolFailure",
    "QueryError",
    "Session",
    "SessionCache",
    "Settings",
    "TransportFailure",
    "create_client",
]
