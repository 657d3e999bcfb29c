"""
Fernet encryption for message text stored at rest.
"""

import base64
import functools

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import settings

CONTENT_KEY_SALT = b"time_capsule_content_salt"
CONTENT_KEY_ITERATIONS = 100000


@functools.lru_cache(maxsize=4)
def _fernet_for_key(secret: str) -> Fernet:
    # 32-char keys are used directly; anything else is stretched with PBKDF2.
    if len(secret) == 32:
        return Fernet(base64.urlsafe_b64encode(secret.encode()))

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=CONTENT_KEY_SALT,
        iterations=CONTENT_KEY_ITERATIONS,
    )
    return Fernet(base64.urlsafe_b64encode(kdf.derive(secret.encode())))


def _get_fernet() -> Fernet:
    return _fernet_for_key(settings.ENCRYPTION_KEY)


def encrypt_content(content: str) -> str:
    """Encrypt a sealed message. Returns a url-safe Fernet token."""
    return _get_fernet().encrypt(content.encode("utf-8")).decode()


def decrypt_content(ciphertext: str) -> str:
    """
    Decrypt a stored message.

    Raises:
        ValueError: ciphertext was produced under a different key or was tampered with
    """
    try:
        return _get_fernet().decrypt(ciphertext.encode()).decode("utf-8")
    except InvalidToken as exc:
        raise ValueError("Stored content could not be decrypted with the configured key.") from exc
