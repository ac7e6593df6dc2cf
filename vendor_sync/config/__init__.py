"""Configuration management with Pydantic Settings."""

from vendor_sync.config.settings import (
    DEFAULT_BATCH_SIZE,
    MIN_BATCH_SIZE,
    SyncSettings,
    clear_settings_cache,
    get_settings,
)
from vendor_sync.config.sources import (
    FactorySource,
    RescanPolicy,
    SourceKey,
    router_source,
    vault_source,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "MIN_BATCH_SIZE",
    "FactorySource",
    "RescanPolicy",
    "SourceKey",
    "SyncSettings",
    "clear_settings_cache",
    "get_settings",
    "router_source",
    "vault_source",
]
