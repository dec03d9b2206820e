import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from tradejournal.config import ENCRYPTION_KEY
from tradejournal.exceptions import CredentialError

IV_LENGTH = 12
TAG_LENGTH = 16


def _get_key(key_hex: Optional[str] = None) -> bytes:
    key_hex = key_hex if key_hex is not None else ENCRYPTION_KEY
    if not key_hex or len(key_hex) != 64:
        raise CredentialError("ENCRYPTION_KEY must be a 64-character hex string (32 bytes)")
    try:
        return bytes.fromhex(key_hex)
    except ValueError as e:
        raise CredentialError("ENCRYPTION_KEY must be hex encoded") from e


def encrypt(text: str, key_hex: Optional[str] = None) -> str:
    """Encrypt to ``iv:tag:ciphertext`` (all hex) with AES-256-GCM."""
    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(_get_key(key_hex)).encrypt(iv, text.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt(encrypted: str, key_hex: Optional[str] = None) -> str:
    parts = encrypted.split(":")
    if len(parts) != 3:
        raise CredentialError("Invalid encrypted string format")
    try:
        iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
    except ValueError as e:
        raise CredentialError("Invalid encrypted string format") from e

    try:
        plain = AESGCM(_get_key(key_hex)).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as e:
        raise CredentialError("Could not decrypt credentials") from e
    return plain.decode("utf-8")
