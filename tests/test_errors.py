from uestc_sso.errors import (CookieError, CookieOperation, ErrorKind, NetworkError,
                              UestcClientError, WeChatError)


def test_error_rendering_and_cause():
    cause = ConnectionError("reset by peer")
    error = NetworkError("GET failed", cause=cause)

    assert isinstance(error, UestcClientError)
    assert error.kind is ErrorKind.NETWORK
    assert error.cause is cause
    assert error.__cause__ is cause
    assert str(error) == "Network error: GET failed"


def test_cookie_error_carries_operation():
    error = CookieError("disk full", CookieOperation.WRITE)
    assert error.kind is ErrorKind.COOKIE
    assert str(error) == "Cookie error (write): disk full"


def test_wechat_error_fields():
    error = WeChatError("Missing appid parameter", reason="missing_param", missing_param="appid")
    assert error.kind is ErrorKind.WECHAT
    assert error.missing_param == "appid"
    assert error.cause is None
