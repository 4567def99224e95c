"""
Symmetric encryption interface for configuration files at rest.
"""

from abc import ABC, abstractmethod


class ICipher(ABC):
    """Interface for symmetric text ciphers."""

    @abstractmethod
    def encrypt(self, plaintext: str, secret: str) -> str:
        """
        Encrypt text with a key derived from ``secret``.

        Args:
            plaintext: Serialized configuration text
            secret: Shared secret

        Returns:
            Printable ciphertext
        """
        pass

    @abstractmethod
    def decrypt(self, ciphertext: str, secret: str) -> str:
        """
        Decrypt text produced by ``encrypt``.

        Args:
            ciphertext: Printable ciphertext
            secret: Shared secret

        Returns:
            Original plaintext

        Raises:
            DecryptionError: If the data is malformed or the secret is wrong
        """
        pass
