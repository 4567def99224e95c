"""
Configuration encryption and decryption.

Configuration text is sealed with AES-GCM under a key derived from the
descriptor's secret with PBKDF2-HMAC-SHA256. Every encryption uses a fresh
salt and nonce, both stored alongside the ciphertext:

    base64( version | salt (16) | nonce (12) | ciphertext + tag )
"""

import base64
import binascii
import logging
import os
import threading
from collections import OrderedDict
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ...core.exceptions import DecryptionError
from ...core.interfaces.crypto import ICipher

logger = logging.getLogger(__name__)

FORMAT_VERSION = b"\x01"
SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32
TAG_SIZE = 16
DEFAULT_ITERATIONS = 100000
KEY_CACHE_SIZE = 64


def _secret_digest(secret: str) -> bytes:
    digest = hashes.Hash(hashes.SHA256())
    digest.update(secret.encode('utf-8'))
    return digest.finalize()


class AesGcmCipher(ICipher):
    """AES-GCM text cipher with password-based key derivation."""

    def __init__(self, iterations: int = DEFAULT_ITERATIONS):
        """
        Initialize the cipher.

        Args:
            iterations: PBKDF2 iteration count
        """
        if iterations <= 0:
            raise ValueError(f"iterations must be positive, got {iterations}")
        self.iterations = iterations
        self._keys: "OrderedDict[Tuple[bytes, bytes], bytes]" = OrderedDict()
        self._keys_lock = threading.Lock()

    def derive_key(self, secret: str, salt: bytes) -> bytes:
        """
        Derive an encryption key from a secret.

        Keys are cached on the cipher per (secret digest, salt) so repeated
        loads of the same file skip the key derivation. Secrets themselves are
        not retained.

        Args:
            secret: Secret to derive the key from
            salt: Salt bytes

        Returns:
            32-byte AES key
        """
        cache_key = (_secret_digest(secret), salt)
        with self._keys_lock:
            key = self._keys.get(cache_key)
            if key is not None:
                self._keys.move_to_end(cache_key)
                return key

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=salt,
            iterations=self.iterations,
        )
        key = kdf.derive(secret.encode('utf-8'))

        with self._keys_lock:
            self._keys[cache_key] = key
            while len(self._keys) > KEY_CACHE_SIZE:
                self._keys.popitem(last=False)
        return key

    def encrypt(self, plaintext: str, secret: str) -> str:
        salt = os.urandom(SALT_SIZE)
        nonce = os.urandom(NONCE_SIZE)
        key = self.derive_key(secret, salt)

        sealed = AESGCM(key).encrypt(nonce, plaintext.encode('utf-8'), FORMAT_VERSION)
        return base64.b64encode(FORMAT_VERSION + salt + nonce + sealed).decode('ascii')

    def decrypt(self, ciphertext: str, secret: str) -> str:
        try:
            raw = base64.b64decode(ciphertext.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Encrypted configuration is not valid base64") from e

        header_size = len(FORMAT_VERSION) + SALT_SIZE + NONCE_SIZE
        if len(raw) < header_size + TAG_SIZE or raw[:1] != FORMAT_VERSION:
            raise DecryptionError("Encrypted configuration has an unknown layout")

        salt = raw[1:1 + SALT_SIZE]
        nonce = raw[1 + SALT_SIZE:header_size]
        key = self.derive_key(secret, salt)

        try:
            plaintext = AESGCM(key).decrypt(nonce, raw[header_size:], FORMAT_VERSION)
        except InvalidTag as e:
            logger.error("Failed to decrypt configuration: invalid secret or corrupted data")
            raise DecryptionError(
                "Failed to decrypt configuration: invalid secret or corrupted data") from e

        return plaintext.decode('utf-8')
