from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import List, Optional

from platformdirs import PlatformDirs

from ..errors import PersistenceError
from ..map.traversal import RetryPolicy
from ..utils.fs import atomic_write_text
from .codec import RunSnapshot, decode_snapshot, encode_snapshot

logger = logging.getLogger(__name__)

APP_NAME = "RogueResident"
ENV_SAVE_DIR = "RR_SAVE_DIR"
SAVE_SUFFIX = ".json"

_SLOT_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


def default_save_dir() -> Path:
    """Save directory: ``RR_SAVE_DIR`` when set, else the platform user-data dir."""
    override = os.getenv(ENV_SAVE_DIR)
    if override:
        return Path(override).expanduser()
    return Path(PlatformDirs(appname=APP_NAME, appauthor=False).user_data_dir) / "saves"


class SaveStore:
    """Named save slots, one JSON file per slot, written atomically."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else default_save_dir()

    def path_for(self, slot: str) -> Path:
        if not _SLOT_RE.match(slot):
            raise PersistenceError(f"Invalid save slot name: {slot!r}")
        return self.base_dir / f"{slot}{SAVE_SUFFIX}"

    def save(self, snapshot: RunSnapshot, slot: str = "run") -> Path:
        path = self.path_for(slot)
        atomic_write_text(path, encode_snapshot(snapshot))
        logger.info("Saved run to %s", path)
        return path

    def load(self, slot: str = "run", retry_policy: Optional[RetryPolicy] = None) -> RunSnapshot:
        path = self.path_for(slot)
        if not path.exists():
            raise PersistenceError(f"No save in slot '{slot}'")
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e
        snapshot = decode_snapshot(text, retry_policy=retry_policy)
        logger.info("Loaded run from %s", path)
        return snapshot

    def exists(self, slot: str = "run") -> bool:
        return self.path_for(slot).exists()

    def delete(self, slot: str = "run") -> bool:
        path = self.path_for(slot)
        if path.exists():
            path.unlink()
            logger.info("Deleted save %s", path)
            return True
        return False

    def slots(self) -> List[str]:
        if not self.base_dir.exists():
            return []
        return sorted(p.stem for p in self.base_dir.glob(f"*{SAVE_SUFFIX}"))


__all__ = ["APP_NAME", "ENV_SAVE_DIR", "SaveStore", "default_save_dir"]
