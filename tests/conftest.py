import pytest

LOGIN_PAGE_HTML = """<!DOCTYPE html>
<html>
<head>
  <script type="text/javascript" src="/authserver/custom/js/jquery.min.js"></script>
  <script type="text/javascript" src="/authserver/custom/js/encrypt.js?v=20240101"></script>
  <script type="text/javascript" src="/authserver/custom/js/login-encrypt-extra.js"></script>
</head>
<body>
  <div id="pwdLoginDiv">
    <form id="pwdFromId" method="post" action="/authserver/login">
      <input id="username" name="username" value="">
      <input id="password" type="password" name="passwordText" value="">
      <input type="hidden" id="_eventId" name="_eventId" value="submit">
      <input type="hidden" id="cllt" name="cllt" value="userNameLogin">
      <input type="hidden" id="dllt" name="dllt" value="generalLogin">
      <input type="hidden" id="lt" name="lt" value="">
      <input type="hidden" id="pwdEncryptSalt" value="SALT123456789012">
      <input type="hidden" id="execution" name="execution" value="e1s1-abcdef">
      <input type="hidden" name="noIdField" value="ignored">
      <input type="checkbox" id="rememberMe">
    </form>
  </div>
  <div id="qrLoginDiv"><input id="qrOnly" value="outside"></div>
</body>
</html>
"""

ERROR_PAGE_HTML = """<html><body>
  <div id="pwdLoginDiv">
    <input type="hidden" id="pwdEncryptSalt" value="SALT123456789012">
    <span id="showErrorTip"><span>  您提供的用户名或者密码有误  </span></span>
  </div>
</body></html>
"""

QR_XML = """<?xml version="1.0" encoding="UTF-8"?>
<xml>
  <wxerrcode>0</wxerrcode>
  <uuid><![CDATA[071dS1dZ2ZqX0w3i]]></uuid>
</xml>
"""


@pytest.fixture
def login_page_html():
    return LOGIN_PAGE_HTML


@pytest.fixture
def error_page_html():
    return ERROR_PAGE_HTML


@pytest.fixture
def qr_xml():
    return QR_XML
