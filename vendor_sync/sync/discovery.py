"""DeploymentDiscovery — factory event scan into the deployment cache.

One pass per source:
    1. RangeResolver decides the start block
    2. factory events fetched up to head; recorded factory gaps retried
    3. new deployments dedup-merged into the cache (append-only)
    4. factory checkpoint advanced to head, state persisted

A range whose logs fail to decode is recorded as a factory gap like a
range that failed at the floor batch size, so the rest of the run goes on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from vendor_sync.core.exceptions import EventDecodeError
from vendor_sync.logging.context import get_sync_logger, sync_context
from vendor_sync.state.models import BlockRange, Deployment
from vendor_sync.sync.batch_fetcher import FetchResult
from vendor_sync.sync.range_resolver import RangeResolver

if TYPE_CHECKING:
    from vendor_sync.config.sources import FactorySource
    from vendor_sync.state.models import SyncState
    from vendor_sync.state.store import DeploymentStore, ProgressStore
    from vendor_sync.sync.batch_fetcher import BatchEventFetcher


@dataclass
class DiscoveryResult:
    """Discovery pass 결과."""

    deployments: list[Deployment]
    added: list[Deployment] = field(default_factory=list)
    gaps: list[BlockRange] = field(default_factory=list)
    from_block: int | None = None


class DeploymentDiscovery:
    """Factory source 하나의 배포 탐색기."""

    def __init__(
        self,
        source: FactorySource,
        fetcher: BatchEventFetcher,
        deployments: DeploymentStore,
        progress: ProgressStore,
    ) -> None:
        self._source = source
        self._resolver = RangeResolver(source)
        self._fetcher = fetcher
        self._deployments = deployments
        self._progress = progress

    @property
    def source(self) -> FactorySource:
        return self._source

    @property
    def resolver(self) -> RangeResolver:
        return self._resolver

    def load_cached(self) -> list[Deployment]:
        return self._deployments.load()

    async def discover(self, state: SyncState, head: int) -> DiscoveryResult:
        """Run one discovery pass.

        Raises:
            ConfigurationError: cold start without a start block
            PersistenceError: cache unreadable, or cache/state could not be saved
        """
        with sync_context(source=str(self._source.key)):
            return await self._discover(state, head)

    async def _discover(self, state: SyncState, head: int) -> DiscoveryResult:
        key = self._source.key
        log = get_sync_logger()
        cached = self._deployments.load()
        checkpoint = state.checkpoint.factory_block(key)
        log.info("Loaded {} cached {} deployments", len(cached), key)

        decision = self._resolver.resolve(checkpoint, cached, head)
        if not decision.should_query:
            log.info("Skipping factory query: {}", decision.reason)
            return DiscoveryResult(deployments=cached)

        log.info("Querying factory from block {} to {} ({})", decision.from_block, head, decision.reason)
        pending = [BlockRange(from_block=decision.from_block, to_block=head)] if decision.from_block <= head else []
        result = await self._fetch(pending)

        open_gaps = state.gaps_for(self._source.gap_scope)
        if open_gaps:
            log.info("Retrying {} recorded factory gaps", len(open_gaps))
            result.extend(await self._fetch(sorted(open_gaps, key=lambda r: r.from_block)))

        discovered = [
            Deployment(address=event.deployed_address, deployment_block=event.block_number)  # type: ignore[attr-defined]
            for event in sorted(result.events, key=lambda e: (e.block_number, e.log_index))
            if isinstance(event, self._source.deployment_event)
        ]
        merged, added = self._deployments.merge(cached, discovered)
        if added:
            self._deployments.save(merged)
        log.info("Found {} deployment events, {} new {}s", len(discovered), len(added), key)

        if result.gaps:
            log.warning(
                "{} factory block ranges could not be queried and will be retried next run",
                len(result.gaps),
            )
        state.set_gaps(self._source.gap_scope, result.gaps)
        state.checkpoint.advance_factory(key, head)
        self._progress.save(state)

        return DiscoveryResult(
            deployments=merged,
            added=added,
            gaps=result.gaps,
            from_block=decision.from_block,
        )

    async def _fetch(self, ranges: list[BlockRange]) -> FetchResult:
        """Fetch factory events per range; a range with undecodable logs is kept as a gap."""
        combined = FetchResult()
        for block_range in ranges:
            try:
                result = await self._fetcher.fetch(
                    self._source.event_filter, block_range.from_block, block_range.to_block
                )
            except EventDecodeError as e:
                get_sync_logger().warning(
                    "Factory logs in blocks {}-{} could not be decoded ({}), keeping range as a gap",
                    block_range.from_block,
                    block_range.to_block,
                    e.message,
                )
                result = FetchResult(gaps=[block_range])
            combined.extend(result)
        return combined
