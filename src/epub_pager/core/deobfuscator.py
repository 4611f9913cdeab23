"""IDPF font obfuscation."""

from __future__ import annotations

import hashlib
from typing import Callable

OBFUSCATION_ALGORITHM = "http://www.idpf.org/2008/embedding"
OBFUSCATED_LENGTH = 1040
KEY_LENGTH = 20

Deobfuscator = Callable[[bytes], bytes]


def make_deobfuscator(uid: str) -> Deobfuscator:
    """Create the transform for resources of the publication ``uid``.

    The SHA-1 digest of the identifier is XORed over the first 1040 bytes.
    Applying the transform twice restores the original bytes, so the same
    function obfuscates and deobfuscates.
    """
    key = hashlib.sha1(uid.encode("utf-8")).digest()

    def deobfuscate(data: bytes) -> bytes:
        head = bytes(
            b ^ key[i % KEY_LENGTH] for i, b in enumerate(data[:OBFUSCATED_LENGTH])
        )
        return head + bytes(data[OBFUSCATED_LENGTH:])

    return deobfuscate
