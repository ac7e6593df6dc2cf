"""Incremental, checkpointed synchronization engine.

Exports:
    - RangeResolver: factory scan start block
    - BatchEventFetcher: batched event queries with halving retry
    - DeploymentDiscovery: factory events → deployment cache
    - RouterProcessor / VaultProcessor: per-entity recheck and merge
    - SyncService: full run orchestration
"""

from vendor_sync.sync.batch_fetcher import BatchEventFetcher, FetchResult, merge_ranges, partition
from vendor_sync.sync.discovery import DeploymentDiscovery, DiscoveryResult
from vendor_sync.sync.processor import (
    EntityOutcome,
    EntityProcessor,
    EntityStatus,
    ProcessSummary,
    ScheduleDecision,
    schedule,
)
from vendor_sync.sync.range_resolver import RangeDecision, RangeResolver
from vendor_sync.sync.routers import RouterProcessor
from vendor_sync.sync.service import SyncReport, SyncScope, SyncService
from vendor_sync.sync.vaults import VaultProcessor, derive_vendors

__all__ = [
    "BatchEventFetcher",
    "DeploymentDiscovery",
    "DiscoveryResult",
    "EntityOutcome",
    "EntityProcessor",
    "EntityStatus",
    "FetchResult",
    "ProcessSummary",
    "RangeDecision",
    "RangeResolver",
    "RouterProcessor",
    "ScheduleDecision",
    "SyncReport",
    "SyncScope",
    "SyncService",
    "VaultProcessor",
    "derive_vendors",
    "merge_ranges",
    "partition",
    "schedule",
]
