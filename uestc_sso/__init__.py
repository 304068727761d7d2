"""
电子科技大学统一身份认证 (IDAS) 登录客户端。

支持用户名密码登录与微信扫码登录，登录后的 Cookie 持久化到本地 JSON 文件，
供后续脚本直接复用会话访问校内服务。

    from uestc_sso import UestcBlockingClient

    with UestcBlockingClient() as client:
        client.login("学号", "密码")
"""

from .client import UestcBlockingClient, UestcClient
from .config import ClientConfig
from .cookies import CookieRecord, SessionCookieJar
from .errors import (ClientInitError, CookieError, CookieOperation, CryptoError,
                     ErrorKind, HtmlParseError, LoginFailed, LogoutFailed,
                     NetworkError, SessionExpired, UestcClientError, WeChatError,
                     XmlParseError)

__all__ = [
    'UestcClient',
    'UestcBlockingClient',
    'ClientConfig',
    'CookieRecord',
    'SessionCookieJar',
    'ErrorKind',
    'CookieOperation',
    'UestcClientError',
    'NetworkError',
    'HtmlParseError',
    'XmlParseError',
    'CryptoError',
    'LoginFailed',
    'LogoutFailed',
    'CookieError',
    'WeChatError',
    'SessionExpired',
    'ClientInitError',
]

__version__ = '0.1.0'
