import pytest

from uestc_sso.errors import ErrorKind, HtmlParseError
from uestc_sso.parser import extract_error_message, parse_login_page


def test_parse_login_page(login_page_html):
    info = parse_login_page(login_page_html)

    assert info.pwd_encrypt_salt == "SALT123456789012"
    assert info.encrypt_script_path == "/authserver/custom/js/encrypt.js?v=20240101"
    assert info.form_data["execution"] == "e1s1-abcdef"
    assert info.form_data["_eventId"] == "submit"
    assert info.form_data["lt"] == ""
    assert info.form_data["pwdEncryptSalt"] == "SALT123456789012"


def test_form_data_only_inputs_with_id_and_value(login_page_html):
    form_data = parse_login_page(login_page_html).form_data

    assert "rememberMe" not in form_data
    assert "noIdField" not in form_data
    assert "ignored" not in form_data.values()
    assert "qrOnly" not in form_data


def test_missing_encrypt_script_is_not_fatal():
    html = '<div id="pwdLoginDiv"><input id="pwdEncryptSalt" value="SALT123456789012"></div>'
    info = parse_login_page(html)
    assert info.encrypt_script_path is None
    assert info.form_data == {"pwdEncryptSalt": "SALT123456789012"}


def test_script_without_javascript_type_is_ignored():
    html = (
        '<script src="/js/encrypt.js"></script>'
        '<div id="pwdLoginDiv"><input id="pwdEncryptSalt" value="SALT123456789012"></div>'
    )
    assert parse_login_page(html).encrypt_script_path is None


@pytest.mark.parametrize("html", [
    "<html><body><div id='pwdLoginDiv'><input id='execution' value='e1s1'></div></body></html>",
    "<html><body><div id='pwdLoginDiv'><input id='pwdEncryptSalt'></div></body></html>",
    "<html><body><input id='pwdEncryptSalt' value='SALT123456789012'></body></html>",
    "",
])
def test_missing_salt(html):
    with pytest.raises(HtmlParseError) as excinfo:
        parse_login_page(html)
    assert excinfo.value.kind is ErrorKind.HTML_PARSE
    assert excinfo.value.missing_field == "pwdEncryptSalt"


def test_salt_with_unsupported_length():
    html = "<div id='pwdLoginDiv'><input id='pwdEncryptSalt' value='tooShort'></div>"
    with pytest.raises(HtmlParseError) as excinfo:
        parse_login_page(html)
    assert excinfo.value.missing_field is None


def test_extract_error_message(error_page_html):
    assert extract_error_message(error_page_html) == "您提供的用户名或者密码有误"


@pytest.mark.parametrize("html", [
    "<html><body></body></html>",
    "<span id='showErrorTip'>   </span>",
    "",
])
def test_extract_error_message_absent(html):
    assert extract_error_message(html) is None
