"""
客户端配置: 统一身份认证 (IDAS) 与微信开放平台的各个端点、超时与 Cookie 持久化选项。

可通过环境变量覆盖部分默认值:
- UESTC_COOKIE_FILE: Cookie 持久化文件路径
- UESTC_TIMEOUT: 普通请求超时 (秒)
- UESTC_POLL_INTERVAL: 扫码轮询间隔 (秒)
- UESTC_PERSIST_COOKIE_EXPIRY: 是否保存 Cookie 过期时间 (1/true/yes)
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# 统一身份认证 (CAS) 相关 URL
IDAS_HOST = "idas.uestc.edu.cn"
IDAS_BASE_URL = f"https://{IDAS_HOST}/authserver"
LOGIN_URL = f"{IDAS_BASE_URL}/login"
LOGOUT_URL = f"{IDAS_BASE_URL}/logout"
# 登录后无 service 参数时，CAS 会重定向到个人中心
PERSONAL_CENTER_URL = f"https://{IDAS_HOST}/personalInfo/personCenter/index.html"
# 组合登录入口，type=weixin 会重定向到微信开放平台
COMBINED_LOGIN_URL = f"{IDAS_BASE_URL}/combinedLogin.do?type=weixin"

# 微信开放平台
WECHAT_OPEN_URL = "https://open.weixin.qq.com"
WECHAT_LP_URL = "https://lp.open.weixin.qq.com"

DEFAULT_COOKIE_FILE = "uestc_cookies.json"

DEFAULT_HEADERS: Dict[str, str] = {
    'User-Agent': 'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7',
    'Accept-Language': 'zh-CN,zh;q=0.9,en;q=0.8,zh-TW;q=0.7',
    'Sec-Fetch-Dest': 'document',
    'Sec-Fetch-Mode': 'navigate',
    'Sec-Fetch-Site': 'same-origin',
    'Upgrade-Insecure-Requests': '1',
    'sec-ch-ua': '"Chromium";v="142", "Google Chrome";v="142", "Not_A Brand";v="99"',
    'sec-ch-ua-mobile': '?0',
    'sec-ch-ua-platform': '"Linux"',
}

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class ClientConfig:
    login_url: str = LOGIN_URL
    logout_url: str = LOGOUT_URL
    personal_center_url: str = PERSONAL_CENTER_URL
    combined_login_url: str = COMBINED_LOGIN_URL
    wechat_open_url: str = WECHAT_OPEN_URL
    wechat_lp_url: str = WECHAT_LP_URL

    cookie_file: str = DEFAULT_COOKIE_FILE
    # 为 False 时所有 Cookie 以会话 Cookie 的形式保存 (expires 恒为空)
    persist_cookie_expiry: bool = False

    timeout: float = 10.0
    poll_timeout: float = 30.0
    poll_interval: float = 0.5

    verify: bool = True
    trust_env: bool = True
    headers: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))

    @property
    def login_path(self) -> str:
        """用于判断是否仍停留在登录页的路径片段"""
        return urlparse(self.login_url).path

    @property
    def idas_domain(self) -> str:
        return urlparse(self.login_url).hostname or IDAS_HOST

    @property
    def wechat_open_domain(self) -> str:
        return urlparse(self.wechat_open_url).hostname or ""

    @classmethod
    def from_env(cls, cookie_file: Optional[str] = None) -> "ClientConfig":
        """以默认值为基础，用环境变量覆盖。解析失败的值保持默认。"""
        config = cls()

        if os.environ.get('UESTC_COOKIE_FILE'):
            config.cookie_file = os.environ.get('UESTC_COOKIE_FILE')

        if os.environ.get('UESTC_TIMEOUT'):
            try:
                config.timeout = float(os.environ.get('UESTC_TIMEOUT'))
            except ValueError:
                logger.warning(f"UESTC_TIMEOUT 无法解析，保持默认值 {config.timeout}")

        if os.environ.get('UESTC_POLL_INTERVAL'):
            try:
                poll_interval = float(os.environ.get('UESTC_POLL_INTERVAL'))
                if poll_interval < 0:
                    raise ValueError(f"negative poll interval {poll_interval}")
                config.poll_interval = poll_interval
            except ValueError:
                logger.warning(f"UESTC_POLL_INTERVAL 无法解析或为负数，保持默认值 {config.poll_interval}")

        if os.environ.get('UESTC_PERSIST_COOKIE_EXPIRY'):
            config.persist_cookie_expiry = (
                os.environ.get('UESTC_PERSIST_COOKIE_EXPIRY').strip().lower() in _TRUE_VALUES
            )

        if cookie_file:
            config.cookie_file = cookie_file
        return config
