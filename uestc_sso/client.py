"""
面向调用方的客户端。

UestcBlockingClient 在当前线程中阻塞执行各流程 (requests)；
UestcClient 在事件循环中以协程执行同样的流程 (httpx)。

使用方法:
    with UestcBlockingClient() as client:
        client.login("学号", "密码")
        resp = client.get("https://online.uestc.edu.cn/page/")

    async with UestcClient() as client:
        await client.wechat_login(timeout=120)
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Optional

import httpx
import requests

from .config import ClientConfig
from .cookies import SessionCookieJar
from .errors import NetworkError
from .session import SessionProtocol
from .transport import HttpxTransport, RequestsTransport, Sleep

logger = logging.getLogger(__name__)


def _build_protocol(cookie_file: Optional[str], config: Optional[ClientConfig],
                    qr_renderer: Optional[Callable[[str], None]]) -> SessionProtocol:
    if config is None:
        config = ClientConfig.from_env(cookie_file)
    elif cookie_file:
        config = replace(config, cookie_file=cookie_file)
    jar = SessionCookieJar.load(config.cookie_file, persist_expiry=config.persist_cookie_expiry)
    return SessionProtocol(config, jar, qr_renderer)


class UestcBlockingClient:
    """
    阻塞式客户端。

    参数:
        cookie_file (str): Cookie 持久化文件，默认 uestc_cookies.json.
        config (ClientConfig): 完整配置，未提供时从环境变量读取.
        session (requests.Session): 可选的自定义会话.
        transport: 可选的自定义传输 (需提供 send(Request) -> Response).
        qr_renderer: 可选的二维码展示函数.
    """

    def __init__(self, cookie_file: Optional[str] = None, config: Optional[ClientConfig] = None,
                 session: Optional[requests.Session] = None, transport=None,
                 qr_renderer: Optional[Callable[[str], None]] = None):
        self._protocol = _build_protocol(cookie_file, config, qr_renderer)
        self._transport = transport or RequestsTransport(
            self._protocol.cookie_jar, self._protocol.config, session
        )

    @property
    def config(self) -> ClientConfig:
        return self._protocol.config

    @property
    def cookie_jar(self) -> SessionCookieJar:
        return self._protocol.cookie_jar

    @property
    def session(self) -> requests.Session:
        return self._transport.session

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        self.close()

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is not None:
            close()

    def _run(self, flow):
        reply, error = None, None
        while True:
            try:
                command = flow.throw(error) if error is not None else flow.send(reply)
            except StopIteration as stop:
                return stop.value
            reply, error = None, None

            if isinstance(command, Sleep):
                time.sleep(command.seconds)
                continue
            try:
                reply = self._transport.send(command)
            except NetworkError as e:
                error = e

    def login(self, username: str, password: str) -> None:
        self._run(self._protocol.login(username, password))

    def logout(self) -> None:
        self._run(self._protocol.logout())

    def is_session_active(self) -> bool:
        return self._run(self._protocol.probe())

    def require_session(self) -> None:
        """会话失效时抛出 SessionExpired"""
        self._run(self._protocol.require_session())

    def wechat_login(self, timeout: Optional[float] = None, cancel=None) -> None:
        """
        微信扫码登录。

        参数:
            timeout (float): 轮询截止时长 (秒).
            cancel: 带 is_set() 的对象 (如 threading.Event)，置位后终止轮询.
        """
        cancelled = cancel.is_set if cancel is not None else None
        self._run(self._protocol.wechat_login(timeout=timeout, cancelled=cancelled))

    def save_cookies(self) -> bool:
        return self._protocol.persist_cookies()

    # 以下方法直接透传给 requests.Session

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        return self.session.request(method, url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.session.get(url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self.session.post(url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> requests.Response:
        return self.session.put(url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> requests.Response:
        return self.session.patch(url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> requests.Response:
        return self.session.delete(url, **kwargs)

    def head(self, url: str, **kwargs: Any) -> requests.Response:
        return self.session.head(url, **kwargs)


class UestcClient:
    """
    协程客户端，参数与 UestcBlockingClient 相同，session 为 httpx.AsyncClient。
    支持 'async with' 语法，退出时关闭 httpx.AsyncClient。
    """

    def __init__(self, cookie_file: Optional[str] = None, config: Optional[ClientConfig] = None,
                 session: Optional[httpx.AsyncClient] = None, transport=None,
                 qr_renderer: Optional[Callable[[str], None]] = None):
        self._protocol = _build_protocol(cookie_file, config, qr_renderer)
        self._transport = transport or HttpxTransport(
            self._protocol.cookie_jar, self._protocol.config, session
        )

    @property
    def config(self) -> ClientConfig:
        return self._protocol.config

    @property
    def cookie_jar(self) -> SessionCookieJar:
        return self._protocol.cookie_jar

    @property
    def session(self) -> httpx.AsyncClient:
        return self._transport.session

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, exc_traceback):
        await self.aclose()

    async def aclose(self) -> None:
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()

    async def _run(self, flow):
        reply, error = None, None
        try:
            while True:
                try:
                    command = flow.throw(error) if error is not None else flow.send(reply)
                except StopIteration as stop:
                    return stop.value
                reply, error = None, None

                if isinstance(command, Sleep):
                    await asyncio.sleep(command.seconds)
                    continue
                try:
                    reply = await self._transport.send(command)
                except NetworkError as e:
                    error = e
        finally:
            # 任务被取消时关闭生成器，释放流程状态
            flow.close()

    async def login(self, username: str, password: str) -> None:
        await self._run(self._protocol.login(username, password))

    async def logout(self) -> None:
        await self._run(self._protocol.logout())

    async def is_session_active(self) -> bool:
        return await self._run(self._protocol.probe())

    async def require_session(self) -> None:
        await self._run(self._protocol.require_session())

    async def wechat_login(self, timeout: Optional[float] = None, cancel=None) -> None:
        """
        微信扫码登录。除 timeout / cancel 外，也可以直接取消所在的任务
        (例如 asyncio.wait_for)。
        """
        cancelled = cancel.is_set if cancel is not None else None
        await self._run(self._protocol.wechat_login(timeout=timeout, cancelled=cancelled))

    def save_cookies(self) -> bool:
        return self._protocol.persist_cookies()

    # 以下方法直接透传给 httpx.AsyncClient

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await self.session.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.session.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.session.post(url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.session.put(url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.session.patch(url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.session.delete(url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.session.head(url, **kwargs)
