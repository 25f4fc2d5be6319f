"""
登录时用到的两套密码加密。

- 统一认证 (CAS): 模拟登录页 encrypt.js, AES-CBC, 密钥为页面下发的 salt,
  明文前拼 64 位随机串, IV 为 16 位随机串。
- 图书馆系统 (ic-web): RSA-OAEP(SHA-1) 加密 "密码;nonce", 公钥和 nonce
  每次登录前从服务器获取。

两者都只抛出 CryptoFailure, 与"密码错误"区分开。
"""

import base64
import logging

from Crypto.Cipher import AES, PKCS1_OAEP
from Crypto.Hash import SHA1
from Crypto.PublicKey import RSA
from Crypto.Random import random as secure_random
from Crypto.Util.Padding import pad

from .errors import CryptoFailure

logger = logging.getLogger(__name__)

# 与登录页 JS 相同的字母表, 去掉了 I/l/O/0/1/9 等易混字符
AES_CHARS = "ABCDEFGHJKMNPQRSTWXYZabcdefhijkmnprstwxyz2345678"
CAS_PREFIX_LENGTH = 64
CAS_IV_LENGTH = 16

PEM_HEADER = "-----BEGIN PUBLIC KEY-----"
PEM_FOOTER = "-----END PUBLIC KEY-----"


def random_string(length: int, alphabet: str = AES_CHARS) -> str:
    """从 alphabet 中用安全随机源取 length 个字符"""
    if length < 0:
        raise ValueError("length must be non-negative")
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    return "".join(secure_random.choice(alphabet) for _ in range(length))


def aes_cbc_encrypt(plaintext: str, key: str, iv: str) -> str:
    """AES-CBC 加 PKCS7 填充, key 和 iv 按 UTF-8 取字节, 返回 Base64 密文"""
    try:
        cipher = AES.new(key.encode("utf-8"), AES.MODE_CBC, iv.encode("utf-8"))
        padded = pad(plaintext.encode("utf-8"), AES.block_size, style="pkcs7")
        return base64.b64encode(cipher.encrypt(padded)).decode("utf-8")
    except (ValueError, TypeError) as e:
        raise CryptoFailure(f"AES 加密失败: {e}") from e


def encrypt_cas_password(password: str, salt: str) -> str:
    """
    加密统一认证密码。

    每次调用都会生成新的随机前缀和 IV, 因此同一密码的密文每次都不同。

    参数:
        password (str): 明文密码.
        salt (str): 登录页 pwdDefaultEncryptSalt 的值, 作为 AES 密钥.

    返回:
        str: Base64 密文.
    """
    salt = (salt or "").strip()
    if not salt:
        raise CryptoFailure("缺少加密 salt")

    prefix = random_string(CAS_PREFIX_LENGTH)
    iv = random_string(CAS_IV_LENGTH)
    return aes_cbc_encrypt(prefix + password, salt, iv)


def wrap_public_key(public_key: str) -> str:
    """服务器只下发 Base64 的 DER 公钥, 补上 PEM 头尾"""
    public_key = public_key.strip()
    if PEM_HEADER in public_key:
        return public_key
    return f"{PEM_HEADER}\n{public_key}\n{PEM_FOOTER}"


def encrypt_booking_password(password: str, nonce: str, public_key: str) -> str:
    """
    加密图书馆系统密码。

    明文为 "密码;nonce", 使用 RSA-OAEP (SHA-1, MGF1-SHA-1)。哈希算法必须与
    服务器一致, 否则服务器只会返回与密码错误相同的失败码。

    参数:
        password (str): 明文密码.
        nonce (str): 服务器下发的 nonceStr.
        public_key (str): 服务器下发的公钥 (Base64 DER 或 PEM).

    返回:
        str: Base64 密文.
    """
    if not isinstance(public_key, str) or not public_key.strip():
        raise CryptoFailure("缺少 RSA 公钥")

    try:
        key = RSA.import_key(wrap_public_key(public_key))
    except (ValueError, IndexError, TypeError) as e:
        raise CryptoFailure(f"RSA 公钥导入失败: {e}") from e

    message = f"{password};{nonce}".encode("utf-8")
    try:
        cipher = PKCS1_OAEP.new(key, hashAlgo=SHA1)
        encrypted = cipher.encrypt(message)
    except (ValueError, TypeError) as e:
        raise CryptoFailure(f"RSA 加密失败: {e}") from e

    logger.debug(f"RSA 密钥长度 {key.size_in_bits()} 位, 密文 {len(encrypted)} 字节")
    return base64.b64encode(encrypted).decode("utf-8")
