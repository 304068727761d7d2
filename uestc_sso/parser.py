"""登录页 HTML 解析: 提取加密盐、隐藏表单字段与错误提示。"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from bs4 import BeautifulSoup

from .errors import HtmlParseError

logger = logging.getLogger(__name__)

SALT_FIELD_ID = "pwdEncryptSalt"
LOGIN_FORM_DIV_ID = "pwdLoginDiv"
ERROR_TIP_ID = "showErrorTip"

VALID_SALT_LENGTHS = (16, 24, 32)


@dataclass
class LoginPageInfo:
    pwd_encrypt_salt: str
    form_data: Dict[str, str] = field(default_factory=dict)
    encrypt_script_path: Optional[str] = None


def parse_login_page(html: str) -> LoginPageInfo:
    """
    从登录页 HTML 中提取本次会话的动态字段。

    参数:
        html (str): 登录页 HTML.

    返回:
        LoginPageInfo: 加密盐、#pwdLoginDiv 中所有带 id 与 value 的 input，以及 encrypt 脚本路径。

    异常:
        HtmlParseError: 缺少 pwdEncryptSalt，或其长度不能作为 AES 密钥。
    """
    soup = BeautifulSoup(html, "html.parser")

    encrypt_script_path = None
    for script in soup.find_all("script", attrs={"type": "text/javascript"}):
        src = script.get("src")
        if src and "encrypt" in src:
            encrypt_script_path = src
            break
    if encrypt_script_path:
        logger.debug(f"加密脚本路径: {encrypt_script_path}")
    else:
        logger.debug("未找到加密脚本 (不影响登录)")

    form_data: Dict[str, str] = {}
    login_div = soup.find(id=LOGIN_FORM_DIV_ID)
    if login_div is not None:
        for element in login_div.find_all("input"):
            input_id = element.get("id")
            value = element.get("value")
            if input_id and value is not None:
                form_data[input_id] = value
    else:
        logger.warning(f"登录页中未找到 #{LOGIN_FORM_DIV_ID}")

    salt = form_data.get(SALT_FIELD_ID)
    if not salt:
        raise HtmlParseError(
            f"Missing field: {SALT_FIELD_ID}",
            missing_field=SALT_FIELD_ID,
        )

    if len(salt.strip().encode('utf-8')) not in VALID_SALT_LENGTHS:
        raise HtmlParseError(f"{SALT_FIELD_ID} has unsupported length {len(salt)}")

    logger.debug(f"登录页解析完成，表单字段: {sorted(form_data)}")
    return LoginPageInfo(
        pwd_encrypt_salt=salt,
        form_data=form_data,
        encrypt_script_path=encrypt_script_path,
    )


def extract_error_message(html: str) -> Optional[str]:
    """提取 #showErrorTip 中的错误提示，不存在或为空时返回 None。"""
    try:
        soup = BeautifulSoup(html, "html.parser")
    except Exception as e:
        logger.debug(f"错误提示解析失败: {e}")
        return None

    tip = soup.find(id=ERROR_TIP_ID)
    if tip is None:
        return None
    text = tip.get_text().strip()
    return text or None
