"""
传输层。

协议流程 (session.py) 只产出 Request / Sleep 指令并接收 Response，
具体的网络 I/O 由两种传输实现完成:
    RequestsTransport - 基于 requests.Session，阻塞调用
    HttpxTransport    - 基于 httpx.AsyncClient，协程调用

两种实现共享同一个 SessionCookieJar 作为 Cookie 存储。
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import httpx
import requests
import urllib3

from .config import ClientConfig
from .cookies import SessionCookieJar
from .errors import ClientInitError, NetworkError

logger = logging.getLogger(__name__)


@dataclass
class Request:
    method: str
    url: str
    data: Optional[Mapping[str, str]] = None
    headers: Optional[Dict[str, str]] = None
    timeout: Optional[float] = None


@dataclass
class Response:
    status_code: int
    # 跟随重定向后的最终 URL
    url: str
    text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400


@dataclass
class Sleep:
    seconds: float


class RequestsTransport:
    """阻塞式传输，对应 requests.Session"""

    def __init__(self, cookie_jar: SessionCookieJar, config: ClientConfig,
                 session: Optional[requests.Session] = None):
        self._config = config
        try:
            self._session = session or requests.Session()
        except Exception as e:
            raise ClientInitError(f"failed to create requests session: {e}", cause=e) from e
        self._session.headers.update(config.headers)
        self._session.cookies = cookie_jar
        self._session.trust_env = config.trust_env
        self._session.verify = config.verify
        if not config.verify:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @property
    def session(self) -> requests.Session:
        return self._session

    def send(self, request: Request) -> Response:
        logger.debug(f"{request.method} {request.url}")
        try:
            resp = self._session.request(
                request.method,
                request.url,
                data=request.data,
                headers=request.headers,
                timeout=request.timeout or self._config.timeout,
                allow_redirects=True,
            )
            # 读取完整响应体，确保重定向链上的 Cookie 都已写入
            text = resp.text
        except requests.RequestException as e:
            logger.error(f"请求 {request.url} 失败: {e}")
            raise NetworkError(str(e), cause=e) from e

        logger.debug(f"响应 {resp.status_code}，最终 URL: {resp.url}")
        return Response(resp.status_code, resp.url, text, dict(resp.headers))

    def close(self) -> None:
        self._session.close()


class HttpxTransport:
    """协程式传输，对应 httpx.AsyncClient"""

    def __init__(self, cookie_jar: SessionCookieJar, config: ClientConfig,
                 client: Optional[httpx.AsyncClient] = None):
        self._config = config
        try:
            if client is None:
                client = httpx.AsyncClient(
                    trust_env=config.trust_env,
                    verify=config.verify,
                    follow_redirects=True,
                )
        except Exception as e:
            raise ClientInitError(f"failed to create httpx client: {e}", cause=e) from e
        client.headers.update(config.headers)
        client.cookies = cookie_jar
        self._client = client

    @property
    def session(self) -> httpx.AsyncClient:
        return self._client

    async def send(self, request: Request) -> Response:
        logger.debug(f"{request.method} {request.url}")
        try:
            resp = await self._client.request(
                request.method,
                request.url,
                data=request.data,
                headers=request.headers,
                timeout=request.timeout or self._config.timeout,
                follow_redirects=True,
            )
            text = resp.text
        except httpx.HTTPError as e:
            logger.error(f"请求 {request.url} 失败: {e}")
            raise NetworkError(str(e), cause=e) from e

        logger.debug(f"响应 {resp.status_code}，最终 URL: {resp.url}")
        return Response(resp.status_code, str(resp.url), text, dict(resp.headers))

    async def aclose(self) -> None:
        await self._client.aclose()
