"""
统一的异常体系。

所有对外抛出的错误都是 UestcClientError 的子类，携带:
    kind    - ErrorKind 枚举，标识错误类别
    message - 人类可读的描述
    cause   - 可选的底层异常 (同时会作为 __cause__ 链接)
"""

import enum
from typing import Optional


class ErrorKind(enum.Enum):
    NETWORK = "Network error"
    HTML_PARSE = "HTML parse error"
    XML_PARSE = "XML parse error"
    CRYPTO = "Crypto error"
    LOGIN_FAILED = "Login failed"
    LOGOUT_FAILED = "Logout failed"
    COOKIE = "Cookie error"
    WECHAT = "WeChat error"
    SESSION_EXPIRED = "Session expired"
    CLIENT_INIT = "Client init error"


class CookieOperation(enum.Enum):
    READ = "read"
    WRITE = "write"
    SERIALIZE = "serialize"
    DESERIALIZE = "deserialize"


class UestcClientError(Exception):
    """所有客户端错误的基类"""

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class NetworkError(UestcClientError):
    kind = ErrorKind.NETWORK


class HtmlParseError(UestcClientError):
    """登录页结构不符合预期。missing_field 指出缺失的字段 id。"""

    kind = ErrorKind.HTML_PARSE

    def __init__(self, message: str, missing_field: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.missing_field = missing_field


class XmlParseError(UestcClientError):
    kind = ErrorKind.XML_PARSE


class CryptoError(UestcClientError):
    kind = ErrorKind.CRYPTO

    INVALID_KEY_LENGTH = "invalid_key_length"

    def __init__(self, message: str, reason: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.reason = reason


class LoginFailed(UestcClientError):
    kind = ErrorKind.LOGIN_FAILED


class LogoutFailed(UestcClientError):
    kind = ErrorKind.LOGOUT_FAILED


class CookieError(UestcClientError):
    kind = ErrorKind.COOKIE

    def __init__(self, message: str, operation: CookieOperation,
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.operation = operation

    def __str__(self) -> str:
        return f"{self.kind.value} ({self.operation.value}): {self.message}"


class WeChatError(UestcClientError):
    """
    微信扫码登录相关错误。

    reason 取值:
        missing_param / invalid_url / unexpected_redirect / qr_display /
        missing_code / expired / timeout / cancelled / callback_failed
    """

    kind = ErrorKind.WECHAT

    def __init__(self, message: str, reason: Optional[str] = None,
                 missing_param: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.reason = reason
        self.missing_param = missing_param


class SessionExpired(UestcClientError):
    kind = ErrorKind.SESSION_EXPIRED


class ClientInitError(UestcClientError):
    kind = ErrorKind.CLIENT_INIT
