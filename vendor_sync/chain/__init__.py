"""Chain boundary: JSON-RPC client, typed event records, ChainClient port.

Exports:
    - ChainClient: Protocol consumed by the sync engine
    - JsonRpcChainClient: Rate-limited httpx JSON-RPC implementation
    - Event records: ContractDeployed, ProxyCreated, ConfigSet, ResolvedVaultSet
"""

from vendor_sync.chain.abi import ZERO_ADDRESS, same_address
from vendor_sync.chain.client import JsonRpcChainClient, RateLimiter
from vendor_sync.chain.events import (
    EVENT_TYPES,
    ChainEvent,
    ConfigSet,
    ContractDeployed,
    EventFilter,
    ProxyCreated,
    ResolvedVaultSet,
    decode_log,
)
from vendor_sync.chain.ports import ChainClient

__all__ = [
    "EVENT_TYPES",
    "ZERO_ADDRESS",
    "ChainClient",
    "ChainEvent",
    "ConfigSet",
    "ContractDeployed",
    "EventFilter",
    "JsonRpcChainClient",
    "ProxyCreated",
    "RateLimiter",
    "ResolvedVaultSet",
    "decode_log",
    "same_address",
]
