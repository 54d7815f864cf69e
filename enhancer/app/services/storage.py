"""Local key-value persistence for history, favorites, settings and analytics.

Two backends share one interface: an in-memory dict for tests and
ephemeral runs, and a single JSON document on disk for local use.
"""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from enhancer.app.core.logging import get_logger
from enhancer.app.exceptions import SettingsValidationError, StorageError
from enhancer.app.services.enhancer import EnhancedPrompt
from enhancer.app.services.validation import OutputStructure, PromptMode, PromptRequest

logger = get_logger(__name__)

STORAGE_KEYS = {
    "history": "prompt-history",
    "favorites": "prompt-favorites",
    "analytics": "prompt-analytics",
    "settings": "prompt-settings",
}


class KeyValueStore(ABC):
    """Abstract base class for key-value stores holding JSON-compatible values."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value.

        Raises:
            StorageError: If the value cannot be persisted
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every key."""


class InMemoryStore(KeyValueStore):
    """Dict-backed store. Data is lost when the process exits."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        # Stored serialized; every get returns a fresh copy
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for '{key}' is not serializable: {e}") from e
        with self._lock:
            self._data[key] = raw

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class JsonFileStore(KeyValueStore):
    """Store persisted as one JSON object in a file.

    Writes go to a temporary file that is then moved over the target with
    ``os.replace``. An unreadable file is logged and treated as empty.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Storage file {self.path} does not hold an object, ignoring it")
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Could not write storage file {self.path}: {e}") from e

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)

    def clear(self) -> None:
        with self._lock:
            self._write({})


def create_store(path: str = "") -> KeyValueStore:
    """JSON file store for a non-empty path, in-memory store otherwise."""
    if path:
        logger.info(f"Persisting history to {path}")
        return JsonFileStore(path)
    return InMemoryStore()


class PromptHistoryItem(BaseModel):
    id: str
    input: PromptRequest
    output: EnhancedPrompt
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_api(self, favorite: bool = False) -> Dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        data["favorite"] = favorite
        return data


_history_adapter = TypeAdapter(List[PromptHistoryItem])


class PromptHistoryRepository:
    """History (newest first) and favorite ids on top of a KeyValueStore."""

    DEFAULT_MAX_ITEMS = 50

    def __init__(self, store: KeyValueStore, max_items: int = DEFAULT_MAX_ITEMS):
        self.store = store
        self.max_items = max_items
        self._lock = threading.Lock()

    def get_history(self) -> List[PromptHistoryItem]:
        raw = self.store.get(STORAGE_KEYS["history"])
        if not raw:
            return []
        try:
            return _history_adapter.validate_python(raw)
        except ValidationError as e:
            logger.error(f"Error loading history: {e.error_count()} invalid entries")
            return []

    def get_item(self, item_id: str) -> Optional[PromptHistoryItem]:
        return next((item for item in self.get_history() if item.id == item_id), None)

    def append(self, item: PromptHistoryItem) -> None:
        """Add an item at the front, keeping only the newest ``max_items``."""
        with self._lock:
            history = [item] + self.get_history()[: self.max_items - 1]
            self.store.set(
                STORAGE_KEYS["history"],
                _history_adapter.dump_python(history, mode="json", by_alias=True),
            )

    def get_favorites(self) -> Set[str]:
        raw = self.store.get(STORAGE_KEYS["favorites"])
        if not isinstance(raw, list):
            return set()
        return {str(v) for v in raw}

    def toggle(self, item_id: str) -> bool:
        """Flip an id's favorite flag and return the new state."""
        with self._lock:
            raw = self.store.get(STORAGE_KEYS["favorites"])
            favorites = [str(v) for v in raw] if isinstance(raw, list) else []
            if item_id in favorites:
                favorites.remove(item_id)
                is_favorite = False
            else:
                favorites.append(item_id)
                is_favorite = True
            self.store.set(STORAGE_KEYS["favorites"], favorites)
            return is_favorite

    def get_favorite_items(self) -> List[PromptHistoryItem]:
        favorites = self.get_favorites()
        return [item for item in self.get_history() if item.id in favorites]

    def clear(self) -> None:
        """Remove history and favorites."""
        with self._lock:
            self.store.delete(STORAGE_KEYS["history"])
            self.store.delete(STORAGE_KEYS["favorites"])

    def restore(self, items: List[PromptHistoryItem], favorites: Iterable[str]) -> None:
        """Replace history and favorites wholesale, keeping the newest ``max_items``."""
        with self._lock:
            self.store.set(
                STORAGE_KEYS["history"],
                _history_adapter.dump_python(
                    items[: self.max_items], mode="json", by_alias=True
                ),
            )
            self.store.set(STORAGE_KEYS["favorites"], list(dict.fromkeys(favorites)))


class AppSettings(BaseModel):
    """User preferences kept alongside history."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    theme: Literal["light", "dark", "system"] = "system"
    default_mode: PromptMode = Field(default=PromptMode.TEXT, alias="defaultMode")
    default_output_structure: OutputStructure = Field(
        default=OutputStructure.DESCRIPTIVE_PARAGRAPH, alias="defaultOutputStructure"
    )
    auto_save: bool = Field(default=True, alias="autoSave")
    max_history_items: int = Field(default=50, ge=10, le=200, alias="maxHistoryItems")
    enable_analytics: bool = Field(default=True, alias="enableAnalytics")
    api_timeout: int = Field(default=30, ge=10, le=120, alias="apiTimeout")
    show_advanced_options: bool = Field(default=False, alias="showAdvancedOptions")

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def describe_errors(error: ValidationError, prefix: str = "") -> str:
    """One ``location: message`` entry per error, joined with ``; ``."""
    messages = []
    for detail in error.errors():
        loc = [prefix] if prefix else []
        loc.extend(str(part) for part in detail["loc"])
        messages.append(f"{'.'.join(loc)}: {detail['msg']}")
    return "; ".join(messages)


def merge_settings(changes: Mapping[str, Any], base: Optional[AppSettings] = None) -> AppSettings:
    """Apply ``changes`` (API field names) over ``base``, or over the defaults.

    Raises:
        ValidationError: If the merged preferences are invalid
    """
    merged = (base or AppSettings()).to_api()
    merged.update(changes)
    return AppSettings.model_validate(merged)


class SettingsRepository:
    """Preferences stored under one key, merged over the defaults on load."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = threading.Lock()

    def get(self) -> AppSettings:
        raw = self.store.get(STORAGE_KEYS["settings"])
        if not isinstance(raw, Mapping):
            return AppSettings()
        try:
            return merge_settings(raw)
        except ValidationError as e:
            logger.warning(f"Failed to load settings, using defaults: {e.error_count()} errors")
            return AppSettings()

    def save(self, settings: AppSettings) -> None:
        with self._lock:
            self.store.set(STORAGE_KEYS["settings"], settings.to_api())

    def update(self, changes: Mapping[str, Any]) -> AppSettings:
        """Merge changes into the current preferences and persist them.

        Raises:
            SettingsValidationError: If the result is invalid
        """
        try:
            settings = merge_settings(changes, self.get())
        except ValidationError as e:
            raise SettingsValidationError(describe_errors(e)) from e
        self.save(settings)
        return settings

    def reset(self) -> AppSettings:
        with self._lock:
            self.store.delete(STORAGE_KEYS["settings"])
        return AppSettings()
