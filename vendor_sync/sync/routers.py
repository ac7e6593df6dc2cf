"""RouterProcessor — ConfigSet / ResolvedVaultSet events per EulerRouter.

Merge is additive: adapters and asset-pair adapter lists are unions,
resolved vaults only gain keys, event counters are summed. Adapter
classification (vendor_info) is recomputed for every known adapter on
each merge so registry updates propagate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from vendor_sync.chain.events import ConfigSet, EventFilter, ResolvedVaultSet
from vendor_sync.config.sources import SourceKey
from vendor_sync.state.models import RouterRecord
from vendor_sync.sync.batch_fetcher import FetchResult
from vendor_sync.sync.processor import DEFAULT_ENTITY_DELAY, EntityProcessor, unique_extend

if TYPE_CHECKING:
    from vendor_sync.chain.ports import ChainClient
    from vendor_sync.state.models import Deployment, SyncState
    from vendor_sync.state.store import ProgressStore
    from vendor_sync.sync.batch_fetcher import BatchEventFetcher
    from vendor_sync.vendors.attributor import VendorAttributor

ROUTER_EVENT_TYPES = (ConfigSet, ResolvedVaultSet)


class RouterProcessor(EntityProcessor[FetchResult]):
    """EulerRouter 설정 이벤트 수집 및 adapter 분류."""

    kind = SourceKey.ROUTER

    def __init__(
        self,
        client: ChainClient,
        fetcher: BatchEventFetcher,
        store: ProgressStore,
        attributor: VendorAttributor,
        *,
        recheck_interval_blocks: int,
        entity_delay: float = DEFAULT_ENTITY_DELAY,
    ) -> None:
        super().__init__(
            client,
            fetcher,
            store,
            recheck_interval_blocks=recheck_interval_blocks,
            entity_delay=entity_delay,
        )
        self._attributor = attributor

    @property
    def attributor(self) -> VendorAttributor:
        return self._attributor

    async def collect(
        self,
        deployment: Deployment,
        state: SyncState,
        from_block: int,
        head: int,
    ) -> FetchResult:
        event_filter = EventFilter(deployment.address, ROUTER_EVENT_TYPES)
        result = await self._fetcher.fetch(event_filter, from_block, head)

        open_gaps = state.gaps_for(self.gap_scope(deployment.address))
        if open_gaps:
            result.extend(await self._fetcher.fetch_ranges(event_filter, open_gaps))
        return result

    def merge(self, deployment: Deployment, state: SyncState, collected: FetchResult, head: int) -> str:
        record = state.routers.get(deployment.address) or RouterRecord(
            address=deployment.address,
            deployment_block=deployment.deployment_block,
        )

        config_events = [e for e in collected.events if isinstance(e, ConfigSet)]
        vault_events = [e for e in collected.events if isinstance(e, ResolvedVaultSet)]

        new_adapters = 0
        for event in config_events:
            if unique_extend(record.adapters, [event.oracle]):
                new_adapters += 1
            unique_extend(record.asset_pairs.setdefault(event.pair_key, []), [event.oracle])
        for event in vault_events:
            record.resolved_vaults[event.vault] = event.asset

        record.config_events_count += len(config_events)
        record.vault_events_count += len(vault_events)
        record.vendor_info = self._attributor.classify_all(record.adapters)

        state.routers[deployment.address] = record
        state.set_gaps(self.gap_scope(deployment.address), collected.gaps)

        summary = (
            f"{len(config_events)} config events ({new_adapters} new adapters, "
            f"{len(record.adapters)} total), {len(vault_events)} vault events"
        )
        if collected.gaps:
            summary += f", {len(collected.gaps)} open gaps"
        return summary

    def refresh_cached(self, deployment: Deployment, state: SyncState) -> bool:
        record = state.routers.get(deployment.address)
        if record is None:
            return False
        vendor_info = self._attributor.classify_all(record.adapters)
        if vendor_info == record.vendor_info:
            return False
        record.vendor_info = vendor_info
        return True

    def record_error(self, deployment: Deployment, state: SyncState, error: str) -> None:
        record = state.routers.get(deployment.address)
        if record is None:
            record = RouterRecord(address=deployment.address, deployment_block=deployment.deployment_block)
            state.routers[deployment.address] = record
        record.last_error = error
