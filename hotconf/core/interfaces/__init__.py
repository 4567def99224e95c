"""
Capability interfaces injected into the persistence engine.
"""

from .codecs import ICodec
from .crypto import ICipher

__all__ = [
    "ICodec",
    "ICipher",
]
