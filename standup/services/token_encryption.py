"""AES-256-GCM token encryption for persisted OAuth credentials.

Each token is encrypted independently with a fresh random nonce and stored
as three colon-delimited hex segments:

    <iv>:<auth tag>:<ciphertext>

A value with fewer than three segments, non-hex segments, or a bad IV/tag
length raises CiphertextFormatError. A well-formed value that fails GCM
authentication (wrong key, flipped bit, swapped AAD) raises
InvalidCiphertextError. Neither is ever reported as "no token".

Key source precedence:
    1. TOKEN_ENCRYPTION_KEY env var (64 hex chars = 32 bytes)
    2. TOKEN_ENCRYPTION_KEY_FILE env var (path to a 32-byte raw key file)

The key is process-wide configuration: it is never persisted alongside
ciphertext and never logged.
"""

import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from standup.errors.domain import CiphertextFormatError, InvalidCiphertextError

logger = logging.getLogger(__name__)

_REQUIRED_KEY_LENGTH = 32
_IV_LENGTH = 12
# IVs written by earlier deployments were 16 bytes; GCM accepts both.
_ACCEPTED_IV_LENGTHS = frozenset({12, 16})
_TAG_LENGTH = 16


def load_encryption_key() -> bytes:
    """Load the 32-byte AES-256 key from the environment.

    Returns:
        32-byte encryption key.

    Raises:
        ValueError: If no key is configured, or the configured key is
            malformed or has the wrong length.
    """
    env_key = os.environ.get("TOKEN_ENCRYPTION_KEY", "").strip()
    if env_key:
        try:
            key = bytes.fromhex(env_key)
        except ValueError as e:
            raise ValueError("TOKEN_ENCRYPTION_KEY is not valid hex") from e
        if len(key) != _REQUIRED_KEY_LENGTH:
            raise ValueError(
                f"TOKEN_ENCRYPTION_KEY has invalid length {len(key)} (expected {_REQUIRED_KEY_LENGTH})"
            )
        return key

    env_key_file = os.environ.get("TOKEN_ENCRYPTION_KEY_FILE", "").strip()
    if env_key_file:
        if os.path.islink(env_key_file):
            raise ValueError(
                f"TOKEN_ENCRYPTION_KEY_FILE is a symlink: {env_key_file}. "
                "Symlinks are rejected to prevent link-following attacks."
            )
        if not os.path.isfile(env_key_file):
            raise ValueError(
                f"TOKEN_ENCRYPTION_KEY_FILE is not a regular file: {env_key_file}"
            )
        with open(env_key_file, "rb") as f:
            key = f.read()
        if len(key) != _REQUIRED_KEY_LENGTH:
            raise ValueError(
                f"Key file {env_key_file} has invalid length {len(key)} (expected {_REQUIRED_KEY_LENGTH})"
            )
        return key

    raise ValueError(
        "Missing TOKEN_ENCRYPTION_KEY (or TOKEN_ENCRYPTION_KEY_FILE) environment variable"
    )


def _check_key(key: bytes) -> None:
    if len(key) != _REQUIRED_KEY_LENGTH:
        raise ValueError(
            f"Encryption key must be exactly {_REQUIRED_KEY_LENGTH} bytes "
            f"(got {len(key)}). AES-256-GCM requires a 256-bit key."
        )


def encrypt_token(plaintext: str, key: bytes, aad: str = "") -> str:
    """Encrypt a token to 'iv:tag:ciphertext' hex form.

    Args:
        plaintext: Token to encrypt.
        key: 32-byte AES-256 key.
        aad: Additional authenticated data binding the value to its row.

    Returns:
        Encoded ciphertext string.

    Raises:
        ValueError: If key is not exactly 32 bytes.
    """
    _check_key(key)
    iv = os.urandom(_IV_LENGTH)
    sealed = AESGCM(key).encrypt(
        iv, plaintext.encode("utf-8"), aad.encode("utf-8") if aad else None
    )
    ciphertext, tag = sealed[:-_TAG_LENGTH], sealed[-_TAG_LENGTH:]
    return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt_token(encrypted: str, key: bytes, aad: str = "") -> str:
    """Decrypt a value produced by encrypt_token.

    Args:
        encrypted: 'iv:tag:ciphertext' hex string.
        key: 32-byte AES-256 key.
        aad: Additional authenticated data (must match encryption).

    Returns:
        Plaintext token.

    Raises:
        CiphertextFormatError: If the encoding is malformed.
        InvalidCiphertextError: If authentication fails.
    """
    if len(key) != _REQUIRED_KEY_LENGTH:
        raise InvalidCiphertextError(
            f"Decryption key must be exactly {_REQUIRED_KEY_LENGTH} bytes (got {len(key)})"
        )

    segments = (encrypted or "").split(":")
    if len(segments) < 3:
        raise CiphertextFormatError("Invalid encrypted token format")
    iv_hex, tag_hex, ciphertext_hex = segments[0], segments[1], ":".join(segments[2:])
    if not iv_hex or not tag_hex:
        raise CiphertextFormatError("Invalid encrypted token format")

    try:
        iv = bytes.fromhex(iv_hex)
        tag = bytes.fromhex(tag_hex)
        ciphertext = bytes.fromhex(ciphertext_hex)
    except (ValueError, binascii.Error) as e:
        raise CiphertextFormatError(f"Encrypted token is not valid hex: {e}") from e

    if len(iv) not in _ACCEPTED_IV_LENGTHS:
        raise CiphertextFormatError(f"Invalid IV length {len(iv)}")
    if len(tag) != _TAG_LENGTH:
        raise CiphertextFormatError(f"Invalid auth tag length {len(tag)} (expected {_TAG_LENGTH})")

    try:
        plaintext = AESGCM(key).decrypt(
            iv, ciphertext + tag, aad.encode("utf-8") if aad else None
        )
    except InvalidTag as e:
        raise InvalidCiphertextError("Token authentication failed") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidCiphertextError("Decrypted token is not valid UTF-8") from e
