"""
Address Cipher

Encrypts public wallet addresses for storage at rest with AES-256-GCM and
derives a keyed fingerprint so records can be looked up by address without
persisting the plaintext.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..config import settings
from .errors import DecryptionError

_VERSION = "v1"
_NONCE_SIZE = 12
_TAG_SIZE = 16
_KEY_SIZE = 32


def _derive_keys(secret: str, salt: bytes, iterations: int) -> tuple[bytes, bytes]:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=_KEY_SIZE * 2,
        salt=salt,
        iterations=iterations,
    )
    material = kdf.derive(secret.encode("utf-8"))
    return material[:_KEY_SIZE], material[_KEY_SIZE:]


class AddressCipher:
    """Stateless encrypt/decrypt pair over a derived AES-GCM key."""

    def __init__(
        self,
        secret: str,
        *,
        salt: Optional[str] = None,
        iterations: Optional[int] = None,
    ) -> None:
        if not secret:
            raise ValueError("An address secret is required to encrypt wallet addresses")
        salt_bytes = (salt or settings.address_kdf_salt).encode("utf-8")
        self._enc_key, self._mac_key = _derive_keys(
            secret,
            salt_bytes,
            iterations or settings.address_kdf_iterations,
        )
        self._aead = AESGCM(self._enc_key)

    @classmethod
    def from_settings(cls) -> "AddressCipher":
        return cls(
            settings.address_secret,
            salt=settings.address_kdf_salt,
            iterations=settings.address_kdf_iterations,
        )

    def encrypt(self, plain_address: str) -> str:
        nonce = os.urandom(_NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plain_address.encode("utf-8"), _VERSION.encode("ascii"))
        token = base64.urlsafe_b64encode(nonce + sealed).decode("ascii")
        return f"{_VERSION}.{token}"

    def decrypt(self, cipher_text: str) -> str:
        if not isinstance(cipher_text, str):
            raise DecryptionError("ciphertext must be a string")
        version, sep, token = cipher_text.partition(".")
        if not sep or version != _VERSION:
            raise DecryptionError("unsupported ciphertext version")
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii"))
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError("ciphertext is not valid base64") from exc
        if len(raw) < _NONCE_SIZE + _TAG_SIZE:
            raise DecryptionError("ciphertext is truncated")
        nonce, sealed = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
        try:
            plain = self._aead.decrypt(nonce, sealed, _VERSION.encode("ascii"))
        except InvalidTag as exc:
            raise DecryptionError("ciphertext failed authentication") from exc
        try:
            return plain.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("decrypted address is not valid text") from exc

    def fingerprint(self, plain_address: str) -> str:
        digest = hmac.new(self._mac_key, plain_address.encode("utf-8"), hashlib.sha256)
        return digest.hexdigest()[:32]
