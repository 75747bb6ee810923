import hashlib
import hmac
import os
from typing import Optional

from app_logger import get_logger
from config import SCRYPT_N, SCRYPT_R, SCRYPT_P

logger = get_logger("security")

SCHEME = "scrypt"
SALT_BYTES = 16
DIGEST_BYTES = 32


def _scrypt(password: str, salt: bytes, n: int, r: int, p: int) -> bytes:
    # maxmem must cover 128 * r * n bytes plus some headroom
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt,
        n=n,
        r=r,
        p=p,
        maxmem=256 * r * n,
        dklen=DIGEST_BYTES,
    )


def get_password_hash(password: str, salt: Optional[bytes] = None) -> str:
    """Hash a password using salted scrypt.

    The result is ``scrypt$n$r$p$salt_hex$digest_hex``. A fresh random salt is
    drawn unless one is given, so the same password and salt always produce
    the same digest.
    """
    if salt is None:
        salt = os.urandom(SALT_BYTES)
    digest = _scrypt(password, salt, SCRYPT_N, SCRYPT_R, SCRYPT_P)
    return f"{SCHEME}${SCRYPT_N}${SCRYPT_R}${SCRYPT_P}${salt.hex()}${digest.hex()}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        scheme, n, r, p, salt_hex, digest_hex = hashed_password.split("$")
        if scheme != SCHEME:
            return False
        expected = bytes.fromhex(digest_hex)
        actual = _scrypt(plain_password, bytes.fromhex(salt_hex), int(n), int(r), int(p))
    except (ValueError, OverflowError) as e:
        logger.warning(f"[VERIFY] Unreadable password digest: {e}")
        return False
    return hmac.compare_digest(actual, expected)
