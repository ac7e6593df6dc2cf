"""Core module - exceptions and logging shared by every layer."""

from vendor_sync.core.exceptions import (
    ConfigurationError,
    DataValidationError,
    EntityProcessingError,
    EventDecodeError,
    InfrastructureError,
    PersistenceError,
    RateLimitError,
    RegistryError,
    RpcError,
    RpcTransientError,
    SyncError,
    add_context_note,
)

__all__ = [
    "ConfigurationError",
    "DataValidationError",
    "EntityProcessingError",
    "EventDecodeError",
    "InfrastructureError",
    "PersistenceError",
    "RateLimitError",
    "RegistryError",
    "RpcError",
    "RpcTransientError",
    "SyncError",
    "add_context_note",
]
