"""
AES-256-GCM encryption for quarantined originals.

Keys live outside the project tree so they never end up in version
control:

- {key_dir}/{project_hash}.key - 32 random bytes, hex encoded, mode 0600

``key_dir`` defaults to ``$MEMORYLINK_HOME/keys`` (``~/.memorylink/keys``).
Each encryption derives a fresh key from the master key with PBKDF2 and a
random salt. The encrypted text is a single line::

    MEMORYLINK_ENCRYPTED_V1:<base64(salt + nonce + ciphertext + tag)>
"""

import base64
import binascii
import logging
import os
import secrets
import tempfile
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from memorylink.protocols import EncryptionError
from memorylink.storage.paths import project_hash

logger = logging.getLogger(__name__)

ENCRYPTED_MARKER = "MEMORYLINK_ENCRYPTED_V1"
KEY_LENGTH = 32
SALT_LENGTH = 32
NONCE_LENGTH = 12
PBKDF2_ITERATIONS = 100_000


def default_key_dir() -> Path:
    home = os.environ.get("MEMORYLINK_HOME")
    base = Path(home).expanduser() if home else Path.home() / ".memorylink"
    return base / "keys"


def is_encrypted(data: str) -> bool:
    return data.startswith(ENCRYPTED_MARKER + ":")


class KeyManager:
    """Loads or creates the per-project master key.

    A new key is written and fsynced to a temp file, then hard-linked
    into place, so the key file is either absent or complete. Two
    processes racing to create the first key end up sharing whichever
    link landed first.
    """

    def __init__(self, project_root: Path, key_dir: Optional[Path] = None):
        """Initialize key manager.

        Args:
            project_root: Project whose records are being protected
            key_dir: Directory to store keys (default: ~/.memorylink/keys)
        """
        self.project_root = Path(project_root)
        self.key_dir = Path(key_dir) if key_dir else default_key_dir()

    @property
    def key_path(self) -> Path:
        return self.key_dir / f"{project_hash(self.project_root)}.key"

    def has_key(self) -> bool:
        return self.key_path.exists()

    def get_or_create(self) -> bytes:
        """Return the master key, generating it on first use.

        Raises:
            EncryptionError: If the key cannot be read or written.
        """
        path = self.key_path
        if path.exists():
            if path.stat().st_size > 0:
                return self._read_key(path)
            # Left behind by a crash between create and write; it never held a key.
            logger.warning(f"Replacing empty key file {path}")
            path.unlink(missing_ok=True)

        key = secrets.token_bytes(KEY_LENGTH)
        try:
            self.key_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
            fd, tmp_name = tempfile.mkstemp(dir=str(self.key_dir), prefix=f".{path.name}.", suffix=".tmp")
        except OSError as e:
            raise EncryptionError(f"Cannot create key file {path}: {e.strerror or e}") from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w") as f:
                f.write(key.hex())
                f.flush()
                os.fsync(f.fileno())
            os.link(tmp_name, str(path))
        except FileExistsError:
            return self._read_key(path)
        except OSError as e:
            raise EncryptionError(f"Cannot write key file {path}: {e.strerror or e}") from e
        finally:
            tmp_path.unlink(missing_ok=True)
        logger.info(f"Generated quarantine key at {path}")
        return key

    def _read_key(self, path: Path) -> bytes:
        try:
            key = bytes.fromhex(path.read_text(encoding="ascii").strip())
        except (OSError, ValueError) as e:
            raise EncryptionError(f"Cannot read key file {path}: {e}") from e
        if len(key) != KEY_LENGTH:
            raise EncryptionError(f"Key file {path} is corrupted (expected {KEY_LENGTH} bytes)")
        return key


def _derive_key(master_key: bytes, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(master_key)


def encrypt_text(plaintext: str, master_key: bytes) -> str:
    """Encrypt text with a key derived from ``master_key``."""
    salt = secrets.token_bytes(SALT_LENGTH)
    nonce = secrets.token_bytes(NONCE_LENGTH)
    ciphertext = AESGCM(_derive_key(master_key, salt)).encrypt(
        nonce, plaintext.encode("utf-8"), ENCRYPTED_MARKER.encode("ascii")
    )
    payload = base64.b64encode(salt + nonce + ciphertext).decode("ascii")
    return f"{ENCRYPTED_MARKER}:{payload}\n"


def decrypt_text(data: str, master_key: bytes) -> str:
    """Decrypt text produced by :func:`encrypt_text`.

    Raises:
        EncryptionError: If the data is not in the expected format, or the
            key is wrong, or the ciphertext was tampered with.
    """
    if not is_encrypted(data):
        raise EncryptionError("Data is not in MEMORYLINK_ENCRYPTED_V1 format")
    try:
        raw = base64.b64decode(data[len(ENCRYPTED_MARKER) + 1 :].strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncryptionError(f"Encrypted payload is not valid base64: {e}") from e
    if len(raw) <= SALT_LENGTH + NONCE_LENGTH:
        raise EncryptionError("Encrypted payload is truncated")

    salt = raw[:SALT_LENGTH]
    nonce = raw[SALT_LENGTH : SALT_LENGTH + NONCE_LENGTH]
    ciphertext = raw[SALT_LENGTH + NONCE_LENGTH :]
    try:
        plaintext = AESGCM(_derive_key(master_key, salt)).decrypt(
            nonce, ciphertext, ENCRYPTED_MARKER.encode("ascii")
        )
    except InvalidTag as e:
        raise EncryptionError("Decryption failed: wrong key or corrupted data") from e
    return plaintext.decode("utf-8")
