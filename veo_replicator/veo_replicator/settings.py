"""
Persistent API-key pool with round-robin rotation.

Only the key list and the auto-save flag survive a restart; the active-key
pointer always starts at the first key.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .config import SETTINGS_NAMESPACE, get_settings_config

logger = logging.getLogger(__name__)


def mask_key(key: str) -> str:
    """Render a key for logs/CLI output without exposing it."""
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}...{key[-4:]}"


class SettingsStore:
    """
    API-key pool and user preferences.

    Rotation is single-pointer round-robin. A rotation cycle starts at the key
    that was active when the last batch succeeded (see mark_rotation_origin);
    rotate_key() returns None once advancing would wrap back to that key, so a
    failing batch is tried at most once per configured key.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        api_keys: Optional[Iterable[str]] = None,
        auto_save_enabled: bool = True,
    ):
        self.path = Path(path) if path else None
        self.api_keys: List[str] = []
        self.auto_save_enabled = auto_save_enabled
        self.current_key_index = 0
        self._rotation_origin = 0
        for key in api_keys or []:
            self._append_key(key)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Optional[Path] = None, seed_keys: Iterable[str] = ()) -> "SettingsStore":
        """Load the pool from disk (if present) and merge any seed keys."""
        if path is None:
            cfg = get_settings_config()
            path = cfg.settings_path
            seed_keys = tuple(seed_keys) or cfg.seed_api_keys

        store = cls(path=path)
        if store.path and store.path.exists():
            try:
                payload = json.loads(store.path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Ignoring unreadable settings file %s: %s", store.path, exc)
                payload = {}
            section = payload.get(SETTINGS_NAMESPACE) or {}
            for key in section.get("apiKeys") or []:
                store._append_key(key)
            store.auto_save_enabled = bool(section.get("autoSaveEnabled", True))

        for key in seed_keys:
            store._append_key(key)
        logger.debug("Loaded %d API keys from %s", len(store.api_keys), store.path)
        return store

    def save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            SETTINGS_NAMESPACE: {
                "apiKeys": list(self.api_keys),
                "autoSaveEnabled": self.auto_save_enabled,
            }
        }
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # ------------------------------------------------------------------
    # Key pool
    # ------------------------------------------------------------------

    def _append_key(self, key: str) -> bool:
        key = (key or "").strip()
        if not key or key in self.api_keys:
            return False
        self.api_keys.append(key)
        return True

    def add_api_key(self, key: str) -> bool:
        """Add a key to the pool. Returns False for blanks and duplicates."""
        added = self._append_key(key)
        if added:
            logger.info("Added API key %s (%d total)", mask_key(key.strip()), len(self.api_keys))
            self.save()
        return added

    def remove_api_key(self, index: int) -> str:
        if not 0 <= index < len(self.api_keys):
            raise IndexError(f"No API key at index {index}")
        removed = self.api_keys.pop(index)
        self.current_key_index = max(0, min(self.current_key_index, len(self.api_keys) - 1))
        self._rotation_origin = self.current_key_index
        self.save()
        return removed

    @property
    def has_keys(self) -> bool:
        return bool(self.api_keys)

    @property
    def current_key(self) -> Optional[str]:
        if not self.api_keys:
            return None
        return self.api_keys[self.current_key_index]

    def activate_first(self) -> Optional[str]:
        """Point at the first key and start a new rotation cycle there."""
        self.current_key_index = 0
        self._rotation_origin = 0
        return self.current_key

    def mark_rotation_origin(self) -> None:
        self._rotation_origin = self.current_key_index

    def rotate_key(self) -> Optional[str]:
        """Advance to the next key, or return None if every key has been tried."""
        if not self.api_keys:
            return None
        next_index = (self.current_key_index + 1) % len(self.api_keys)
        if next_index == self._rotation_origin:
            return None
        self.current_key_index = next_index
        return self.api_keys[next_index]

    def set_auto_save(self, enabled: bool) -> None:
        self.auto_save_enabled = enabled
        self.save()


__all__ = ["SettingsStore", "mask_key"]
