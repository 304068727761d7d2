"""
微信扫码登录 (微信开放平台 OAuth) 的协议细节。

流程:
    1. CAS 组合登录重定向到 open.weixin.qq.com/connect/qrconnect?appid=...&redirect_uri=...&state=...
    2. 以 f=xml 请求同一 qrconnect 接口，从 XML 中取出二维码 uuid
    3. 在终端展示 connect/confirm?uuid=<uuid> 的二维码
    4. 长轮询 lp.open.weixin.qq.com/connect/l/qrconnect，解析 window.wx_errcode
    5. 确认后携带 wx_code 回调 redirect_uri，完成 CAS 登录
"""

import enum
import logging
import re
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, quote, urlparse

import qrcode
from lxml import etree

from .config import WECHAT_LP_URL, WECHAT_OPEN_URL
from .errors import WeChatError, XmlParseError

logger = logging.getLogger(__name__)

ERRCODE_PATTERN = re.compile(r"window\.wx_errcode=(\d+)")
WX_CODE_PATTERN = re.compile(r"""window\.wx_code=['"](.+?)['"]""")


@dataclass(frozen=True)
class WechatAuthParams:
    appid: str
    redirect_uri: str
    state: str

    @classmethod
    def from_url(cls, url: str) -> "WechatAuthParams":
        """从微信开放平台的 qrconnect 重定向 URL 中提取 OAuth 参数。"""
        logger.debug("从 URL 中解析微信 OAuth 参数")
        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise WeChatError(f"Invalid URL: {e}", reason="invalid_url", cause=e) from e

        query = parse_qs(parsed.query, keep_blank_values=True)
        values = {}
        for name in ("appid", "redirect_uri", "state"):
            if name not in query:
                raise WeChatError(
                    f"Missing {name} parameter",
                    reason="missing_param",
                    missing_param=name,
                )
            values[name] = query[name][0]

        logger.debug(f"微信 OAuth 参数解析成功 (appid: {values['appid']}, state: {values['state']})")
        return cls(**values)

    def build_qr_xml_url(self, open_url: str = WECHAT_OPEN_URL) -> str:
        return (
            f"{open_url}/connect/qrconnect"
            f"?appid={quote(self.appid, safe='')}"
            f"&redirect_uri={quote(self.redirect_uri, safe='')}"
            f"&state={quote(self.state, safe='')}"
            "&response_type=code&scope=snsapi_login&f=xml&stylelite=1&fast_login=1"
        )

    def build_callback_url(self, wx_code: str) -> str:
        separator = "&" if "?" in self.redirect_uri else "?"
        return f"{self.redirect_uri}{separator}code={wx_code}&state={self.state}"


def parse_qr_uuid_from_xml(xml_text: str) -> str:
    """
    以流式方式解析 qrconnect 的 XML 响应，返回 <uuid> 开始后遇到的第一段非空文本 (含 CDATA)。

    <uuid/> 这类没有内容的标签只打开 uuid 状态，文本取其后第一段非空内容；
    带内容的 </uuid> 结束后状态关闭。

    异常:
        XmlParseError: XML 格式错误，或没有找到 uuid 文本。
    """
    logger.debug(f"从 XML 响应中解析二维码 uuid ({len(xml_text)} 字节)")

    parser = etree.XMLPullParser(events=("start", "end"), resolve_entities=False, no_network=True)
    uuid = None
    in_uuid = False
    try:
        parser.feed(xml_text.encode("utf-8"))
        for event, element in parser.read_events():
            if event == "start":
                if element.tag == "uuid":
                    in_uuid = True
                text = element.text
            else:
                if element.tag == "uuid" and (element.text is not None or len(element)):
                    in_uuid = False
                text = element.tail

            if in_uuid and text and text.strip():
                uuid = text.strip()
                break
        parser.close()
    except etree.XMLSyntaxError as e:
        logger.error(f"解析 uuid 时 XML 格式错误: {e}")
        raise XmlParseError(f"XML parse error: {e}", cause=e) from e

    if not uuid:
        logger.error("XML 响应中未找到 uuid")
        raise XmlParseError("UUID not found in XML response")
    return uuid


def confirm_url(uuid: str, open_url: str = WECHAT_OPEN_URL) -> str:
    """二维码内容: 手机微信扫描后打开的确认页"""
    return f"{open_url}/connect/confirm?uuid={uuid}"


def print_qr_to_terminal(url: str) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


def build_poll_url(uuid: str, last_code: Optional[str] = None, lp_url: str = WECHAT_LP_URL) -> str:
    """
    构造长轮询 URL。

    last_code 表示上一次已观察到的状态码，服务端会阻塞到状态变化后再返回。
    """
    timestamp = int(time.time() * 1000)
    lp = f"{lp_url}/connect/l/qrconnect?uuid={uuid}&_={timestamp}"
    if last_code:
        lp += f"&last={last_code}"
    return lp


class ScanStatus(enum.Enum):
    WAITING = 408
    SCANNED = 404
    CONFIRMED = 405
    EXPIRED = 402
    UNKNOWN = 0

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.CONFIRMED, ScanStatus.EXPIRED)


@dataclass
class ScanResult:
    status: ScanStatus
    wx_code: Optional[str] = None
    # 原始 wx_errcode，未匹配到时为 0
    code: int = 0


_STATUS_BY_CODE = {status.value: status for status in ScanStatus if status is not ScanStatus.UNKNOWN}


def parse_scan_status(text: str) -> ScanResult:
    """
    解析长轮询响应 (形如 window.wx_errcode=405;window.wx_code='xxx';)。

    408 等待扫码 / 404 已扫码待确认 / 405 已确认 / 402 二维码过期，其余为 UNKNOWN。
    没有 wx_errcode 时视为 UNKNOWN(0)。

    异常:
        WeChatError: 状态为已确认但响应中没有 wx_code。
    """
    match = ERRCODE_PATTERN.search(text)
    if match is None:
        logger.warning("无法从微信响应中提取 wx_errcode")
        return ScanResult(ScanStatus.UNKNOWN, code=0)

    code = int(match.group(1))
    status = _STATUS_BY_CODE.get(code, ScanStatus.UNKNOWN)
    if status is ScanStatus.UNKNOWN:
        logger.warning(f"未知的微信扫码状态码: {code}")
    elif status is ScanStatus.EXPIRED:
        logger.warning("微信二维码已过期")
    else:
        logger.debug(f"微信扫码状态: {status.name}")

    if status is not ScanStatus.CONFIRMED:
        return ScanResult(status, code=code)

    code_match = WX_CODE_PATTERN.search(text)
    if code_match is None:
        raise WeChatError("Login confirmed but no wx_code in response", reason="missing_code")
    wx_code = code_match.group(1)
    logger.debug(f"已提取 wx_code (长度: {len(wx_code)})")
    return ScanResult(status, wx_code=wx_code, code=code)


class ScanPoller:
    """
    扫码状态机:
        WAITING -> WAITING / SCANNED / EXPIRED
        SCANNED -> SCANNED / CONFIRMED / EXPIRED
    CONFIRMED 与 EXPIRED 为终态。UNKNOWN 以及 SCANNED 之后的 WAITING 不改变当前状态。
    """

    def __init__(self):
        self.state = ScanStatus.WAITING
        self.last_code: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.state.is_terminal

    def observe(self, result: ScanResult) -> ScanStatus:
        if self.finished:
            raise WeChatError(f"Polling already finished in state {self.state.name}")

        status = result.status
        if status is ScanStatus.UNKNOWN:
            logger.info(f"收到未知状态码 {result.code}，继续等待")
            return self.state

        if status is ScanStatus.WAITING and self.state is ScanStatus.SCANNED:
            logger.info("已扫码后收到等待状态，保持已扫码")
            return self.state

        if status is ScanStatus.SCANNED and self.state is ScanStatus.WAITING:
            logger.info("二维码已被扫描，请在手机上确认登录")
        elif status is ScanStatus.CONFIRMED and self.state is ScanStatus.WAITING:
            logger.debug("未经过已扫码状态直接确认")

        self.state = status
        if status is ScanStatus.SCANNED:
            # 告知长轮询服务端已观察到 404，避免重复返回同一状态
            self.last_code = str(ScanStatus.SCANNED.value)
        return self.state
