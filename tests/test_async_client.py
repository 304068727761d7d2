import asyncio
import json
from urllib.parse import parse_qs

import httpx
import pytest

from uestc_sso import ClientConfig, LoginFailed, UestcClient, WeChatError
from uestc_sso.config import PERSONAL_CENTER_URL

from .conftest import ERROR_PAGE_HTML, LOGIN_PAGE_HTML, QR_XML

QRCONNECT_URL = (
    "https://open.weixin.qq.com/connect/qrconnect?appid=wx1234"
    "&redirect_uri=https%3A%2F%2Fidas.uestc.edu.cn%2Fauthserver%2FcombinedLogin.do%3Ftype%3Dweixin"
    "&state=S1"
)


class FakePortal:
    """模拟统一身份认证与微信开放平台的 httpx.MockTransport 处理函数"""

    def __init__(self, password_ok=True, scan_codes=("408", "404", "405")):
        self.password_ok = password_ok
        self.scan_codes = list(scan_codes)
        self.posted = None
        self.polls = []

    def logged_in(self, request):
        return "CASTGC=TGT-1" in request.headers.get("cookie", "")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host, path = request.url.host, request.url.path

        if host == "idas.uestc.edu.cn" and path == "/authserver/login":
            if request.method == "POST":
                self.posted = parse_qs(request.content.decode())
                if not self.password_ok:
                    return httpx.Response(200, text=ERROR_PAGE_HTML)
                return httpx.Response(302, headers={
                    "Location": PERSONAL_CENTER_URL,
                    "Set-Cookie": "CASTGC=TGT-1; Path=/authserver; Secure; HttpOnly",
                })
            if self.logged_in(request):
                return httpx.Response(302, headers={"Location": PERSONAL_CENTER_URL})
            return httpx.Response(200, text=LOGIN_PAGE_HTML)

        if host == "idas.uestc.edu.cn" and path == "/personalInfo/personCenter/index.html":
            return httpx.Response(200, text="<html>personal center</html>")

        if host == "idas.uestc.edu.cn" and path == "/authserver/combinedLogin.do":
            if "code" in request.url.params:
                assert request.url.params["code"] == "WXCODE"
                return httpx.Response(302, headers={
                    "Location": PERSONAL_CENTER_URL,
                    "Set-Cookie": "CASTGC=TGT-1; Path=/authserver; Secure; HttpOnly",
                })
            return httpx.Response(302, headers={"Location": QRCONNECT_URL})

        if host == "open.weixin.qq.com" and path == "/connect/qrconnect":
            if request.url.params.get("f") == "xml":
                return httpx.Response(200, text=QR_XML)
            return httpx.Response(200, text="<html>qr page</html>")

        if host == "lp.open.weixin.qq.com" and path == "/connect/l/qrconnect":
            self.polls.append(dict(request.url.params))
            code = self.scan_codes.pop(0) if len(self.scan_codes) > 1 else self.scan_codes[0]
            body = f"window.wx_errcode={code};window.wx_code='{'WXCODE' if code == '405' else ''}';"
            return httpx.Response(200, text=body)

        return httpx.Response(404)


def make_client(tmp_path, portal, **config_overrides):
    options = {"cookie_file": str(tmp_path / "cookies.json"), "poll_interval": 0}
    options.update(config_overrides)
    config = ClientConfig(**options)
    session = httpx.AsyncClient(transport=httpx.MockTransport(portal), follow_redirects=True)
    rendered = []
    return UestcClient(config=config, session=session, qr_renderer=rendered.append), rendered


def test_login_persists_and_restores_session(tmp_path):
    portal = FakePortal()

    async def scenario():
        client, _ = make_client(tmp_path, portal)
        async with client:
            assert await client.is_session_active() is False
            await client.login("2023000000", "secret")

        restored, _ = make_client(tmp_path, portal)
        async with restored:
            return await restored.is_session_active()

    assert asyncio.run(scenario()) is True

    assert portal.posted["username"] == ["2023000000"]
    assert portal.posted["execution"] == ["e1s1-abcdef"]

    saved = json.loads((tmp_path / "cookies.json").read_text(encoding="utf-8"))
    assert saved == [{
        "name": "CASTGC", "value": "TGT-1", "domain": "idas.uestc.edu.cn", "path": "/authserver",
        "expires": None, "secure": True, "http_only": True,
    }]


def test_login_rejected(tmp_path):
    portal = FakePortal(password_ok=False)

    async def scenario():
        client, _ = make_client(tmp_path, portal)
        async with client:
            await client.login("2023000000", "wrong")

    with pytest.raises(LoginFailed) as excinfo:
        asyncio.run(scenario())
    assert "密码有误" in str(excinfo.value)


def test_wechat_login(tmp_path):
    portal = FakePortal()

    async def scenario():
        client, rendered = make_client(tmp_path, portal)
        async with client:
            await client.wechat_login()
            return rendered, await client.is_session_active()

    rendered, active = asyncio.run(scenario())

    assert active is True
    assert rendered == ["https://open.weixin.qq.com/connect/confirm?uuid=071dS1dZ2ZqX0w3i"]
    assert [p.get("last") for p in portal.polls] == [None, None, "404"]
    assert (tmp_path / "cookies.json").exists()


def test_wechat_login_expired(tmp_path):
    portal = FakePortal(scan_codes=("408", "402"))

    async def scenario():
        client, _ = make_client(tmp_path, portal)
        async with client:
            await client.wechat_login()

    with pytest.raises(WeChatError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.reason == "expired"


def test_wechat_login_cancelled_by_event(tmp_path):
    portal = FakePortal(scan_codes=("408",))

    async def scenario():
        cancel = asyncio.Event()
        client, _ = make_client(tmp_path, portal, poll_interval=0.01)
        async with client:
            task = asyncio.ensure_future(client.wechat_login(cancel=cancel))
            while not portal.polls:
                await asyncio.sleep(0.01)
            cancel.set()
            await task

    with pytest.raises(WeChatError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.reason == "cancelled"


def test_wechat_login_external_timeout(tmp_path):
    portal = FakePortal(scan_codes=("408",))

    async def scenario():
        client, _ = make_client(tmp_path, portal, poll_interval=0.01)
        async with client:
            await asyncio.wait_for(client.wechat_login(), timeout=0.2)

    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(scenario())
    assert len(portal.polls) >= 1
