"""Encryption of sensitive configuration values.

CryptoBox uses AES-256-CBC with a key and IV fixed per deployment. The same
plaintext therefore always produces the same ciphertext. That determinism is
a known weakness (equal secrets are recognizable at rest) and is kept as a
documented property of the stored format; rotating to per-entry IVs
requires re-encrypting every sensitive entry.
"""

import base64
import binascii
import hashlib
import logging
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from tierconf.errors import ConfigValidationError, EncryptionError

from .values import ConfigValue

logger = logging.getLogger(__name__)

_BLOCK_BITS = algorithms.AES.block_size
_IV_BYTES = _BLOCK_BITS // 8


class CryptoBox:
    """Encrypts and decrypts tagged configuration values.

    The plaintext is the JSON form of the ConfigValue, so the value kind
    survives the round-trip. Ciphertext is base64 text.
    """

    def __init__(self, key_material: Optional[str] = None, iv_hex: Optional[str] = None):
        self._key: Optional[bytes] = None
        self._iv: Optional[bytes] = None
        if key_material:
            self._key = hashlib.sha256(key_material.encode()).digest()
            self._iv = self._build_iv(key_material, iv_hex)
        else:
            logger.warning("No encryption key configured; sensitive values cannot be stored")

    @staticmethod
    def _build_iv(key_material: str, iv_hex: Optional[str]) -> bytes:
        """Return the configured IV, or derive a stable one from the key material."""
        if iv_hex is None:
            return hashlib.sha256(b"tierconf-iv:" + key_material.encode()).digest()[:_IV_BYTES]
        try:
            iv = bytes.fromhex(iv_hex)
        except ValueError as exc:
            raise EncryptionError("encryption IV is not valid hex") from exc
        if len(iv) != _IV_BYTES:
            raise EncryptionError(
                f"encryption IV must be {_IV_BYTES} bytes, got {len(iv)}"
            )
        return iv

    @property
    def is_configured(self) -> bool:
        return self._key is not None

    def encrypt(self, value: ConfigValue) -> str:
        cipher = self._cipher()
        padder = padding.PKCS7(_BLOCK_BITS).padder()
        padded = padder.update(value.to_json().encode("utf-8")) + padder.finalize()
        encryptor = cipher.encryptor()
        raw = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(raw).decode("ascii")

    def decrypt(self, ciphertext: str) -> ConfigValue:
        cipher = self._cipher()
        try:
            raw = base64.b64decode(ciphertext.encode("ascii"), validate=True)
        except (binascii.Error, ValueError, AttributeError) as exc:
            raise EncryptionError("ciphertext is not valid base64") from exc
        if not raw or len(raw) % _IV_BYTES:
            raise EncryptionError("ciphertext length is not a whole number of blocks")

        decryptor = cipher.decryptor()
        padded = decryptor.update(raw) + decryptor.finalize()
        try:
            unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return ConfigValue.from_json(plaintext.decode("utf-8"))
        except (ValueError, UnicodeDecodeError, ConfigValidationError) as exc:
            raise EncryptionError("ciphertext could not be decrypted with the configured key") from exc

    def _cipher(self) -> Cipher:
        if self._key is None or self._iv is None:
            raise EncryptionError("encryption key material is not configured")
        return Cipher(algorithms.AES(self._key), modes.CBC(self._iv))
