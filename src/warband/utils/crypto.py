from __future__ import annotations

import hmac
import logging
import os
from hashlib import sha256
from pathlib import Path
from typing import Any, Mapping, Optional

from platformdirs import PlatformDirs

from .fs import atomic_write, ensure_dir
from .jsonutil import canonical_dumps

logger = logging.getLogger(__name__)

APP_NAME = "Warband"
APP_AUTHOR = "Warband"


def default_data_dir() -> Path:
    return Path(PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR).user_data_dir)


class SaveSigner:
    """Signs save envelopes with a per-install HMAC-SHA256 key.

    The key lives at ``<base_dir>/security/save_hmac.key`` and is created on
    first use. A save copied from another install fails verification. This
    discourages casual save editing; it is not anti-cheat.
    """

    KEY_BYTES = 32

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else default_data_dir()
        self.key_path = self.base_dir / "security" / "save_hmac.key"
        self._key: Optional[bytes] = None

    def key(self) -> bytes:
        if self._key is None:
            self._key = self._read_key() or self._create_key()
        return self._key

    def _read_key(self) -> Optional[bytes]:
        if not self.key_path.exists():
            return None
        try:
            key = self.key_path.read_bytes()
        except OSError:
            logger.warning("Failed to read save signing key; regenerating.", exc_info=True)
            return None
        if len(key) != self.KEY_BYTES:
            logger.warning("Save signing key has unexpected length; regenerating.")
            return None
        return key

    def _create_key(self) -> bytes:
        ensure_dir(self.key_path.parent)
        key = os.urandom(self.KEY_BYTES)
        atomic_write(self.key_path, key)
        try:
            os.chmod(self.key_path, 0o600)
        except OSError:
            logger.debug("Could not chmod key file", exc_info=True)
        logger.info("Created new save signing key at %s", self.key_path)
        return key

    def sign(self, envelope: Mapping[str, Any]) -> str:
        """Hex digest over the canonical JSON of ``envelope``."""
        return hmac.new(self.key(), canonical_dumps(dict(envelope)).encode("utf-8"), sha256).hexdigest()

    def verify(self, envelope: Mapping[str, Any], digest_hex: Any) -> bool:
        if not isinstance(digest_hex, str):
            return False
        try:
            return hmac.compare_digest(self.sign(envelope), digest_hex)
        except TypeError:
            # non-ASCII digest text
            return False
