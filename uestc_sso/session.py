"""
统一身份认证的协议流程。

每个流程都是一个生成器: 产出 Request (发起一次 HTTP 交换) 或 Sleep (暂停)，
由驱动方 (client.py 中的阻塞/协程客户端) 执行后把 Response 送回。
传输失败以 NetworkError 的形式抛回生成器内部，由流程决定终止还是吸收。

因此登录、登出、会话探测与微信扫码登录的逻辑只写一次，与同步/异步无关。
"""

import logging
import time
from typing import Callable, Generator, Optional, Union
from urllib.parse import urlparse

from .config import ClientConfig
from .cookies import SessionCookieJar
from .crypto import encrypt_password
from .errors import (CookieError, LoginFailed, LogoutFailed, NetworkError,
                     SessionExpired, WeChatError)
from .parser import extract_error_message, parse_login_page
from .transport import Request, Response, Sleep
from .wechat import (ScanPoller, ScanStatus, WechatAuthParams, build_poll_url,
                     confirm_url, parse_qr_uuid_from_xml, parse_scan_status,
                     print_qr_to_terminal)

logger = logging.getLogger(__name__)

Command = Union[Request, Sleep]
Flow = Generator[Command, Optional[Response], None]

# 长轮询单次请求的最短超时，避免临近截止时间时发出超时为 0 的请求
MIN_POLL_TIMEOUT = 1.0


class SessionProtocol:
    """
    组合页面解析、密码加密、微信扫码与 Cookie 持久化，提供各登录流程。

    参数:
        config (ClientConfig): 端点与超时配置.
        cookie_jar (SessionCookieJar): 与传输层共享的 Cookie 容器.
        qr_renderer: 接收二维码内容 URL 并在终端展示的函数.
    """

    def __init__(self, config: ClientConfig, cookie_jar: SessionCookieJar,
                 qr_renderer: Optional[Callable[[str], None]] = None):
        self.config = config
        self.cookie_jar = cookie_jar
        self.qr_renderer = qr_renderer or print_qr_to_terminal

    def persist_cookies(self) -> bool:
        """尽力保存 Cookie，失败只记录日志"""
        try:
            self.cookie_jar.save(
                self.config.cookie_file,
                default_domain=self.config.idas_domain,
                persist_expiry=self.config.persist_cookie_expiry,
            )
            return True
        except CookieError as e:
            logger.warning(f"保存 Cookie 失败: {e}")
            return False

    def _is_login_page(self, url: str) -> bool:
        return self.config.login_path in url

    def probe(self) -> Generator[Command, Optional[Response], bool]:
        """
        会话探测: 不带参数访问登录页，最终落在个人中心即视为已登录。
        任何错误都只返回 False。
        """
        try:
            resp = yield Request("GET", self.config.login_url)
        except NetworkError as e:
            logger.debug(f"会话探测失败: {e}")
            return False

        active = resp.url == self.config.personal_center_url
        if active:
            logger.debug("会话有效")
            self.persist_cookies()
        else:
            logger.debug(f"会话无效，最终 URL: {resp.url}")
        return active

    def require_session(self) -> Flow:
        if not (yield from self.probe()):
            raise SessionExpired("session is not active, login required")

    def login(self, username: str, password: str) -> Flow:
        """用户名密码登录"""
        if (yield from self.probe()):
            logger.info("会话仍然有效，无需重新登录")
            return

        logger.info("--- [步骤 1] 获取登录页 ---")
        page = yield Request("GET", self.config.login_url)
        info = parse_login_page(page.text)

        logger.info("--- [步骤 2] 加密密码 ---")
        encrypted_password = encrypt_password(password, info.pwd_encrypt_salt)

        form_data = dict(info.form_data)
        form_data['username'] = username
        form_data['password'] = encrypted_password

        logger.info("--- [步骤 3] 提交登录表单 ---")
        post_url = page.url or self.config.login_url
        parsed = urlparse(post_url)
        headers = {
            'Origin': f"{parsed.scheme}://{parsed.netloc}",
            'Referer': post_url,
        }
        resp = yield Request("POST", post_url, data=form_data, headers=headers)

        if (resp.is_success or resp.is_redirect) and not self._is_login_page(resp.url):
            logger.info("登录成功")
            self.persist_cookies()
            return

        message = extract_error_message(resp.text) or f"login rejected with status {resp.status_code}"
        logger.error(f"登录失败: {message}")
        raise LoginFailed(message)

    def logout(self) -> Flow:
        resp = yield Request("GET", self.config.logout_url)
        if not resp.is_success:
            raise LogoutFailed(f"logout returned status {resp.status_code}")

        self.cookie_jar.clear()
        SessionCookieJar.remove_file(self.config.cookie_file)
        logger.info("已登出")

    def wechat_login(self, timeout: Optional[float] = None,
                     cancelled: Optional[Callable[[], bool]] = None) -> Flow:
        """
        微信扫码登录。

        参数:
            timeout (float): 轮询阶段的截止时长 (秒)，None 表示不限.
            cancelled: 返回 True 时终止轮询.
        """
        if (yield from self.probe()):
            logger.info("会话仍然有效，无需扫码登录")
            return

        logger.info("--- [步骤 1] 跳转微信开放平台 ---")
        resp = yield Request("GET", self.config.combined_login_url)
        host = urlparse(resp.url).hostname
        if host != self.config.wechat_open_domain:
            raise WeChatError(
                f"expected redirect to {self.config.wechat_open_domain}, landed on {resp.url}",
                reason="unexpected_redirect",
            )
        params = WechatAuthParams.from_url(resp.url)

        logger.info("--- [步骤 2] 获取二维码 ---")
        xml_resp = yield Request("GET", params.build_qr_xml_url(self.config.wechat_open_url))
        uuid = parse_qr_uuid_from_xml(xml_resp.text)
        self.display_qr(uuid)

        logger.info("--- [步骤 3] 等待扫码确认 ---")
        wx_code = yield from self.poll(uuid, timeout=timeout, cancelled=cancelled)

        logger.info("--- [步骤 4] 回调统一身份认证 ---")
        final = yield Request("GET", params.build_callback_url(wx_code))
        if self._is_login_page(final.url):
            raise WeChatError(f"callback landed on login page: {final.url}", reason="callback_failed")

        logger.info("微信扫码登录成功")
        self.persist_cookies()

    def display_qr(self, uuid: str) -> None:
        url = confirm_url(uuid, self.config.wechat_open_url)
        logger.info("请使用微信扫描二维码登录")
        try:
            self.qr_renderer(url)
        except Exception as e:
            logger.error(f"二维码显示失败: {e}")
            raise WeChatError(f"failed to display QR code: {e}", reason="qr_display", cause=e) from e
        logger.debug(f"二维码 URL: {url}")

    def poll(self, uuid: str, timeout: Optional[float] = None,
             cancelled: Optional[Callable[[], bool]] = None) -> Generator[Command, Optional[Response], str]:
        """长轮询扫码状态，返回确认后的 wx_code"""
        poller = ScanPoller()
        deadline = time.monotonic() + timeout if timeout is not None else None
        headers = {'Referer': f"{self.config.wechat_open_url}/"}

        while True:
            if cancelled is not None and cancelled():
                raise WeChatError("QR login cancelled", reason="cancelled")

            request_timeout = self.config.poll_timeout
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise WeChatError("QR login timed out", reason="timeout")
                request_timeout = max(MIN_POLL_TIMEOUT, min(request_timeout, remaining))

            lp_url = build_poll_url(uuid, poller.last_code, self.config.wechat_lp_url)
            resp = yield Request("GET", lp_url, headers=headers, timeout=request_timeout)
            result = parse_scan_status(resp.text)

            state = poller.observe(result)
            if state is ScanStatus.CONFIRMED:
                return result.wx_code
            if state is ScanStatus.EXPIRED:
                raise WeChatError("QR code expired", reason="expired")

            yield Sleep(max(self.config.poll_interval, 0))
