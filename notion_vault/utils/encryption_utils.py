"""
Envelope encryption for stored Notion access tokens.

Two sub-keys are derived from a single master secret: one for AES-256-CBC
confidentiality, one for HMAC-SHA256 integrity. Stored blobs are
``base64(IV || ciphertext || tag)`` where the tag covers ``IV || ciphertext``.
The tag is always checked before any decryption is attempted.
"""

import base64
import binascii
import hashlib
import os
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from pydantic import SecretStr

from ..config import get_config
from ..constants import EnvironmentVariable
from ..exceptions import ConfigurationError, DecryptionError, IntegrityError

IV_LENGTH = 16
TAG_LENGTH = 32
BLOCK_SIZE_BITS = 128


def derive_key(master_key: bytes, purpose: str) -> bytes:
    """Derive a 32-byte purpose-specific key from the master secret."""
    return hashlib.sha256(master_key + purpose.encode("utf-8")).digest()


class TokenEncryptor:
    """
    Authenticated symmetric encryption of opaque token strings.

    Example:
        >>> enc = TokenEncryptor("0f" * 32)
        >>> enc.decrypt(enc.encrypt("secret_abc"))
        'secret_abc'
    """

    def __init__(self, master_key: Optional[Union[SecretStr, str]] = None):
        """
        Args:
            master_key: Master secret. Defaults to ``security.encryption_master_key``
                from the global configuration (``ENCRYPTION_MASTER_KEY``).

        Raises:
            ConfigurationError: If no master secret is configured
        """
        if master_key is None:
            master_key = get_config().security.encryption_master_key
        if isinstance(master_key, SecretStr):
            master_key = master_key.get_secret_value()

        if not master_key:
            raise ConfigurationError(
                f"{EnvironmentVariable.ENCRYPTION_MASTER_KEY.value} is not set. "
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"',
                setting=EnvironmentVariable.ENCRYPTION_MASTER_KEY.value,
            )

        raw = master_key.encode("utf-8")
        self._encryption_key = derive_key(raw, "encryption")
        self._hmac_key = derive_key(raw, "hmac")

    def _tag(self, data: bytes) -> hmac.HMAC:
        mac = hmac.HMAC(self._hmac_key, hashes.SHA256())
        mac.update(data)
        return mac

    def encrypt(self, plaintext: Union[str, bytes]) -> str:
        """
        Encrypt a value with a fresh random IV.

        Args:
            plaintext: Text (UTF-8 encoded) or raw bytes

        Returns:
            Base64 text safe to store in a TEXT column
        """
        data = plaintext.encode("utf-8") if isinstance(plaintext, str) else plaintext

        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        padded = padder.update(data) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._encryption_key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        tag = self._tag(iv + ciphertext).finalize()
        return base64.b64encode(iv + ciphertext + tag).decode("ascii")

    def decrypt_bytes(self, encrypted: str) -> bytes:
        """
        Verify and decrypt a blob produced by :meth:`encrypt`.

        Raises:
            DecryptionError: Blob is not valid base64, is too short, or fails to unpad
            IntegrityError: Authentication tag does not match
        """
        try:
            data = base64.b64decode(encrypted, validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise DecryptionError("Invalid encrypted data format", cause=e)

        # At least one cipher block between IV and tag
        if len(data) < IV_LENGTH + IV_LENGTH + TAG_LENGTH:
            raise DecryptionError("Encrypted data too short", length=len(data))

        iv = data[:IV_LENGTH]
        ciphertext = data[IV_LENGTH:-TAG_LENGTH]
        tag = data[-TAG_LENGTH:]

        try:
            self._tag(iv + ciphertext).verify(tag)
        except InvalidSignature as e:
            raise IntegrityError(cause=e)

        try:
            decryptor = Cipher(algorithms.AES(self._encryption_key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise DecryptionError("Decryption failed", cause=e)

    def decrypt(self, encrypted: str) -> str:
        """Verify and decrypt a blob, returning UTF-8 text."""
        plaintext = self.decrypt_bytes(encrypted)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted value is not valid UTF-8", cause=e)
