"""Quarantine partition for content that carried a blocking secret.

The original text goes to ``quarantined/<record-id>.original``, encrypted
with the project key unless ``encrypt_quarantine`` is off. The record that
stays in the records tree holds only a reference to it.
"""

import logging
from pathlib import Path
from typing import Optional

from memorylink.security.encryption import KeyManager, decrypt_text, encrypt_text, is_encrypted
from memorylink.storage import paths
from memorylink.storage.local import RecordStore

logger = logging.getLogger(__name__)


class QuarantineVault:
    """Writes and reads quarantined originals for one project."""

    def __init__(self, store: RecordStore, encrypt: bool = True, key_dir: Optional[Path] = None):
        self.store = store
        self.encrypt = encrypt
        self.keys = KeyManager(store.root, key_dir=key_dir)

    def put(self, record_id: str, original: str) -> str:
        """Store the original and return its relative quarantine reference.

        Raises:
            EncryptionError: If the key cannot be loaded or created.
            StorageError: If the write fails.
        """
        payload = encrypt_text(original, self.keys.get_or_create()) if self.encrypt else original
        path = self.store.write_quarantined(record_id, payload)
        logger.warning(f"Quarantined content of {record_id} at {path}")
        return paths.quarantine_ref(record_id)

    def get(self, record_id: str) -> str:
        """Return the original text, decrypting when needed.

        Raises:
            NotFoundError: If nothing is quarantined under ``record_id``.
            EncryptionError: If decryption fails.
        """
        data = self.store.read_quarantined(record_id)
        if is_encrypted(data):
            return decrypt_text(data, self.keys.get_or_create())
        return data
