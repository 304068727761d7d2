"""
登录密码加密。

复刻登录页 encrypt.js 的逻辑:
    - 以页面下发的 pwdEncryptSalt 原始字节作为 AES 密钥 (16/24/32 字节 -> AES-128/192/256)
    - 随机 16 字符 IV，随机 64 字符前缀拼接在密码前
    - AES-CBC + PKCS7 填充
    - 仅输出密文的 Base64 (IV 不随密文发送)
"""

import base64
import logging
import secrets

from Crypto.Cipher import AES
from Crypto.Util.Padding import pad

from .errors import CryptoError

logger = logging.getLogger(__name__)

# 与 encrypt.js 中的 $aes_chars 一致，去掉了易混淆字符 (0/O, 1/l/I 等)
AES_CHARS = "ABCDEFGHJKMNPQRSTWXYZabcdefhijkmnprstwxyz2345678"

PREFIX_LENGTH = 64
IV_LENGTH = 16
VALID_KEY_LENGTHS = (16, 24, 32)


def random_string(length: int) -> str:
    return "".join(secrets.choice(AES_CHARS) for _ in range(length))


def encrypt_password(password: str, pwd_encrypt_salt: str) -> str:
    """
    加密登录密码。

    参数:
        password (str): 明文密码.
        pwd_encrypt_salt (str): 登录页中的 pwdEncryptSalt.

    返回:
        str: Base64 编码的密文。相同输入每次调用结果都不同。

    异常:
        CryptoError: salt 字节长度不是 16、24 或 32。
    """
    key_bytes = pwd_encrypt_salt.strip().encode('utf-8')
    if len(key_bytes) not in VALID_KEY_LENGTHS:
        raise CryptoError(
            f"Invalid key length: {len(key_bytes)}",
            reason=CryptoError.INVALID_KEY_LENGTH,
        )

    iv_bytes = random_string(IV_LENGTH).encode('utf-8')
    plaintext_bytes = (random_string(PREFIX_LENGTH) + password).encode('utf-8')

    cipher = AES.new(key_bytes, AES.MODE_CBC, iv_bytes)
    # 已是 16 的整数倍时 PKCS7 仍会追加一整块填充
    padded_data = pad(plaintext_bytes, AES.block_size, style='pkcs7')
    ciphertext_bytes = cipher.encrypt(padded_data)

    logger.debug(f"密码已加密 (AES-{len(key_bytes) * 8}, 密文 {len(ciphertext_bytes)} 字节)")
    return base64.b64encode(ciphertext_bytes).decode('utf-8')
