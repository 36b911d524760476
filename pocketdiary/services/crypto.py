"""
Pocket Diary Backend: Cryptographic Primitives
================================================

What:  Key generation, deterministic AES-256-CBC field encryption, password
       digests and salted password verifiers.
Who:   AuthService (emails, names, passwords), AccountService and
       NoteService (note titles and descriptions).

Key Split:
    - Application key (settings.encrypt_key): encrypts email and name for
      every user.
    - Per-user key (User.key): encrypts that user's note title/description.
    Both are 32 random bytes encoded as 64 hex characters.

Deterministic Encryption:
    encrypt() uses a fixed all-zero IV, so the same key and plaintext always
    give the same ciphertext. The users table is looked up by
    encrypt(app_key, email); a random IV would make that lookup impossible
    without a separate blind index. The trade-off: equal plaintexts are
    visible as equal ciphertexts, and a shared prefix leaks through the
    first blocks.

Password Storage:
    hash_password() is a plain SHA-256 digest (deterministic). The stored
    verifier is bcrypt(digest) with a per-user salt. Pre-hashing keeps the
    bcrypt input at 64 bytes, below its 72-byte truncation limit.
    bcrypt is CPU-bound; async callers use seal_password_async() and
    verify_password_async(), which run it in a worker thread.
"""

import asyncio
import hashlib
import logging
import secrets

import bcrypt
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from pocketdiary.config import settings
from pocketdiary.exceptions import CryptoError

logger = logging.getLogger(__name__)

KEY_BYTES = 32
BLOCK_BITS = algorithms.AES.block_size  # 128
ZERO_IV = bytes(BLOCK_BITS // 8)


def generate_key() -> str:
    """Return a fresh 256-bit key as a 64-character hex string."""
    return secrets.token_hex(KEY_BYTES)


def _key_bytes(key: str) -> bytes:
    """Decode and length-check hex key material."""
    try:
        raw = bytes.fromhex(key)
    except (TypeError, ValueError) as e:
        raise CryptoError(context={"reason": "key is not valid hex", "error": str(e)})
    if len(raw) != KEY_BYTES:
        raise CryptoError(
            context={"reason": "wrong key length", "expected": KEY_BYTES, "actual": len(raw)}
        )
    return raw


def _cipher(key: str) -> Cipher:
    return Cipher(algorithms.AES(_key_bytes(key)), modes.CBC(ZERO_IV))


def encrypt(key: str, plaintext: str) -> str:
    """
    Encrypt a UTF-8 string with AES-256-CBC under a zero IV.

    Args:
        key: 64 hex characters.
        plaintext: Any string, including the empty string.

    Returns:
        Lowercase hex ciphertext (a whole number of 16-byte blocks).

    Raises:
        CryptoError: The key is not 32 bytes of valid hex.
    """
    cipher = _cipher(key)
    padder = padding.PKCS7(BLOCK_BITS).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = cipher.encryptor()
    return (encryptor.update(padded) + encryptor.finalize()).hex()


def decrypt(key: str, ciphertext: str) -> str:
    """
    Inverse of encrypt().

    A wrong key shows up as invalid PKCS7 padding or as bytes that are not
    UTF-8; both raise CryptoError, as do malformed hex and partial blocks.
    """
    cipher = _cipher(key)
    try:
        data = bytes.fromhex(ciphertext)
    except (TypeError, ValueError) as e:
        raise CryptoError(context={"reason": "ciphertext is not valid hex", "error": str(e)})
    if not data or len(data) % (BLOCK_BITS // 8):
        raise CryptoError(context={"reason": "ciphertext is not a whole number of blocks"})

    decryptor = cipher.decryptor()
    padded = decryptor.update(data) + decryptor.finalize()
    try:
        unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
        raw = unpadder.update(padded) + unpadder.finalize()
        return raw.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        # ValueError: bad padding. Either way the key did not match.
        raise CryptoError(context={"reason": "decryption failed", "error": type(e).__name__})


def hash_password(plaintext: str) -> str:
    """Unsalted SHA-256 hex digest of a password."""
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def seal_password(digest: str) -> str:
    """Salted bcrypt verifier for a hash_password() digest."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(digest.encode("ascii"), salt).decode("ascii")


def verify_password(digest: str, sealed: str) -> bool:
    """Check a hash_password() digest against a stored seal_password() value."""
    try:
        return bcrypt.checkpw(digest.encode("ascii"), sealed.encode("ascii"))
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password verifier is malformed")
        return False


async def seal_password_async(digest: str) -> str:
    return await asyncio.to_thread(seal_password, digest)


async def verify_password_async(digest: str, sealed: str) -> bool:
    return await asyncio.to_thread(verify_password, digest, sealed)


# Verifier compared against when the email is unknown, so that login spends
# one bcrypt check on both failure paths.
DUMMY_VERIFIER = seal_password(hash_password(secrets.token_hex(16)))
