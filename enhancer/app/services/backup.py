"""Backup export/import and full data reset.

A backup is one JSON document holding settings, history, favorites and
an analytics snapshot. Imports are validated in full before anything is
written, so a bad file leaves existing data untouched.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

from pydantic import TypeAdapter, ValidationError

from enhancer.app.core.logging import get_logger
from enhancer.app.exceptions import BackupValidationError
from enhancer.app.services.analytics import Analytics
from enhancer.app.services.storage import (
    PromptHistoryItem,
    PromptHistoryRepository,
    SettingsRepository,
    describe_errors,
    merge_settings,
)

logger = get_logger(__name__)

_items_adapter = TypeAdapter(List[PromptHistoryItem])
_favorites_adapter = TypeAdapter(List[str])


def export_data(
    history: PromptHistoryRepository,
    settings: SettingsRepository,
    analytics: Analytics,
) -> Dict[str, Any]:
    return {
        "settings": settings.get().to_api(),
        "history": _items_adapter.dump_python(
            history.get_history(), mode="json", by_alias=True
        ),
        "favorites": sorted(history.get_favorites()),
        "analytics": analytics.get_stats(),
        "exportDate": datetime.now(timezone.utc).isoformat(),
    }


def import_data(
    raw: Any,
    history: PromptHistoryRepository,
    settings: SettingsRepository,
) -> Dict[str, Any]:
    """Restore the sections present in a backup.

    Imported settings are merged over the defaults, not over the current
    settings. History and favorites replace what is stored. The analytics
    snapshot is informational and never imported.

    Returns:
        Summary of what was restored

    Raises:
        BackupValidationError: If the backup or any section is invalid
    """
    if not isinstance(raw, Mapping):
        raise BackupValidationError("Invalid backup file: must be an object")

    new_settings = None
    items = None
    favorites = None
    section = ""
    try:
        if raw.get("settings") is not None:
            section = "settings"
            if not isinstance(raw["settings"], Mapping):
                raise BackupValidationError("Invalid backup file: settings must be an object")
            new_settings = merge_settings(raw["settings"])
        if raw.get("history") is not None:
            section = "history"
            items = _items_adapter.validate_python(raw["history"])
        if raw.get("favorites") is not None:
            section = "favorites"
            favorites = _favorites_adapter.validate_python(raw["favorites"])
    except ValidationError as e:
        raise BackupValidationError(
            f"Invalid backup file: {describe_errors(e, prefix=section)}"
        ) from e

    if new_settings is not None:
        settings.save(new_settings)
    if items is not None or favorites is not None:
        history.restore(
            items if items is not None else history.get_history(),
            favorites if favorites is not None else history.get_favorites(),
        )

    summary = {
        "settings": new_settings is not None,
        "history": len(items) if items is not None else 0,
        "favorites": len(favorites) if favorites is not None else 0,
    }
    logger.info("Backup imported", extra=summary)
    return summary


def clear_all_data(history: PromptHistoryRepository, analytics: Analytics) -> None:
    """Remove history, favorites and analytics. Settings are kept."""
    history.clear()
    analytics.clear_data()
