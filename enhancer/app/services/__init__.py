"""Services package for the enhancer.

This package provides:
- Prompt validation and prompt building
- Prompt enhancement against the completion provider
- Local history, favorites and settings persistence
- Backup export/import
- Usage analytics
"""

from enhancer.app.services.analytics import Analytics
from enhancer.app.services.backup import clear_all_data, export_data, import_data
from enhancer.app.services.enhancer import EnhancedPrompt, PromptEnhancer
from enhancer.app.services.storage import (
    AppSettings,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    PromptHistoryItem,
    PromptHistoryRepository,
    SettingsRepository,
    create_store,
)
from enhancer.app.services.validation import (
    OutputStructure,
    PromptMode,
    PromptRequest,
    validate_prompt_input,
)

__all__ = [
    "Analytics",
    "EnhancedPrompt",
    "PromptEnhancer",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "PromptHistoryItem",
    "PromptHistoryRepository",
    "AppSettings",
    "SettingsRepository",
    "clear_all_data",
    "export_data",
    "import_data",
    "create_store",
    "OutputStructure",
    "PromptMode",
    "PromptRequest",
    "validate_prompt_input",
]
