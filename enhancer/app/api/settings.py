"""User settings and data backup endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from enhancer.app.api.dependencies import (
    get_analytics,
    get_history_repository,
    get_settings_repository,
    read_json_body,
)
from enhancer.app.exceptions import SettingsValidationError
from enhancer.app.services.analytics import Analytics
from enhancer.app.services.backup import clear_all_data, export_data, import_data
from enhancer.app.services.storage import PromptHistoryRepository, SettingsRepository

router = APIRouter(prefix="/api", tags=["settings"])


@router.get("/settings")
def get_settings(
    settings: SettingsRepository = Depends(get_settings_repository),
) -> Dict[str, Any]:
    return settings.get().to_api()


@router.put("/settings")
async def update_settings(
    request: Request,
    settings: SettingsRepository = Depends(get_settings_repository),
) -> Dict[str, Any]:
    """Merge the given fields into the stored settings."""
    body = await read_json_body(request)
    if not isinstance(body, dict):
        raise SettingsValidationError("Settings must be an object")
    return settings.update(body).to_api()


@router.delete("/settings")
def reset_settings(
    settings: SettingsRepository = Depends(get_settings_repository),
) -> Dict[str, Any]:
    return settings.reset().to_api()


@router.get("/data/export")
def export_backup(
    history: PromptHistoryRepository = Depends(get_history_repository),
    settings: SettingsRepository = Depends(get_settings_repository),
    analytics: Analytics = Depends(get_analytics),
) -> Dict[str, Any]:
    return export_data(history, settings, analytics)


@router.post("/data/import")
async def import_backup(
    request: Request,
    history: PromptHistoryRepository = Depends(get_history_repository),
    settings: SettingsRepository = Depends(get_settings_repository),
) -> Dict[str, Any]:
    body = await read_json_body(request)
    return {"imported": import_data(body, history, settings)}


@router.delete("/data", status_code=204)
def clear_data(
    history: PromptHistoryRepository = Depends(get_history_repository),
    analytics: Analytics = Depends(get_analytics),
) -> None:
    """Remove history, favorites and analytics. Settings are kept."""
    clear_all_data(history, analytics)
