from __future__ import annotations

import datetime as dt
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .. import __version__
from ..errors import CorruptRunStateError
from ..run import RunManager
from ..utils.crypto import SaveSigner, default_data_dir
from ..utils.fs import atomic_write_json, ensure_dir
from .errors import SaveDecodeError, SaveIntegrityError, SaveNotFoundError

logger = logging.getLogger(__name__)

AUTOSAVE_SLOT = 0


class SaveManager:
    """Numbered save slots for a RunManager's serialized run.

    Slot 0 is the autosave; slots 1..N are manual. Each slot is one JSON file:
    {
      "schema_version": 1,
      "slot": 1,
      "created_at": ISO8601,
      "game_version": str,
      "floor": int,          # for save-select screens
      "hero_count": int,
      "run": str,            # RunManager.serialize() output, stored verbatim
      "hmac": str            # hex digest over the canonical envelope without "hmac"
    }
    """

    SCHEMA_VERSION = 1

    def __init__(self, run_manager: RunManager, base_dir: Optional[Path] = None, slots: Optional[int] = None) -> None:
        self.run_manager = run_manager
        self.base_dir = Path(base_dir) if base_dir is not None else default_data_dir()
        self.save_dir = self.base_dir / "saves"
        self.slots = slots if slots is not None else run_manager.settings.save_slots
        if self.slots < 1:
            raise ValueError("slots must be >= 1")
        self.signer = SaveSigner(self.base_dir)
        ensure_dir(self.save_dir)

    def _check_slot(self, slot: int) -> None:
        if not isinstance(slot, int) or isinstance(slot, bool) or not 0 <= slot <= self.slots:
            raise ValueError(f"Invalid save slot {slot!r}; expected 0..{self.slots}")

    def slot_path(self, slot: int) -> Path:
        self._check_slot(slot)
        return self.save_dir / f"slot_{slot}.json"

    def has_save(self, slot: int) -> bool:
        return self.slot_path(slot).exists()

    def save_game(self, slot: int) -> Path:
        """Serialize the active run into ``slot``, replacing whatever is there."""
        path = self.slot_path(slot)
        payload: Dict[str, Any] = {
            "schema_version": self.SCHEMA_VERSION,
            "slot": slot,
            "created_at": dt.datetime.now(dt.timezone.utc).isoformat(),
            "game_version": __version__,
            "floor": self.run_manager.floor,
            "hero_count": len(self.run_manager.heroes),
            "run": self.run_manager.serialize(),
        }
        envelope = dict(payload)
        envelope["hmac"] = self.signer.sign(payload)
        atomic_write_json(path, envelope)
        logger.info("Saved run to slot %d (%s)", slot, path)
        return path

    def autosave(self) -> Path:
        return self.save_game(AUTOSAVE_SLOT)

    def _read(self, slot: int) -> Dict[str, Any]:
        path = self.slot_path(slot)
        if not path.exists():
            raise SaveNotFoundError(f"No save in slot {slot}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SaveDecodeError(f"Failed to read save slot {slot}") from e
        if not isinstance(data, dict):
            raise SaveDecodeError(f"Save slot {slot} does not hold a JSON object")
        return data

    def _verify(self, slot: int, data: Dict[str, Any]) -> None:
        if data.get("schema_version") != self.SCHEMA_VERSION:
            raise SaveIntegrityError("Unsupported save schema version")
        if data.get("slot") != slot:
            raise SaveIntegrityError(f"Save file belongs to slot {data.get('slot')!r}, not {slot}")
        digest_hex = data.get("hmac")
        if not isinstance(digest_hex, str):
            raise SaveIntegrityError("Missing save HMAC")
        payload = {k: v for k, v in data.items() if k != "hmac"}
        if not self.signer.verify(payload, digest_hex):
            raise SaveIntegrityError("Save HMAC verification failed")

    def load_game(self, slot: int) -> None:
        """Restore the run in ``slot`` into the run manager.

        On any error the run manager keeps its current state.
        """
        data = self._read(slot)
        self._verify(slot, data)
        run_text = data.get("run")
        if not isinstance(run_text, str):
            raise SaveDecodeError(f"Save slot {slot} has no run data")
        try:
            self.run_manager.deserialize(run_text)
        except CorruptRunStateError as e:
            raise SaveDecodeError(f"Save slot {slot} holds a corrupt run: {e}") from e
        logger.info("Loaded run from slot %d", slot)

    def delete_save(self, slot: int) -> bool:
        path = self.slot_path(slot)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted save slot %d", slot)
        return True

    def save_info(self, slot: int) -> Optional[Dict[str, Any]]:
        """Envelope metadata for menus. Not signature-checked; None when missing or unreadable."""
        try:
            data = self._read(slot)
        except (SaveNotFoundError, SaveDecodeError):
            return None
        return {
            "slot": data.get("slot"),
            "schema_version": data.get("schema_version"),
            "created_at": data.get("created_at"),
            "game_version": data.get("game_version"),
            "floor": data.get("floor"),
            "hero_count": data.get("hero_count"),
        }

    def list_saves(self) -> Dict[int, Dict[str, Any]]:
        infos = {}
        for slot in range(0, self.slots + 1):
            info = self.save_info(slot)
            if info is not None:
                infos[slot] = info
        return infos
