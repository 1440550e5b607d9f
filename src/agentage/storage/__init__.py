# Persistence layer — JSON documents under the user config dir.
# Created: 2026-02-21

from agentage.storage.app_settings import AccountStore, AppSettings, SettingsStore
from agentage.storage.documents import CamelModel, JsonDocument

__all__ = ["AccountStore", "AppSettings", "CamelModel", "JsonDocument", "SettingsStore"]
