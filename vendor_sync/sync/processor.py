"""EntityProcessor — recheck scheduling, failure isolation, per-entity persist.

Entity lifecycle (no terminal state while the entity stays cached):

    Unseen ──process──▶ Fresh ──(head - last ≥ interval)──▶ Stale ──process──▶ Fresh

Each processing step is split in two:

    collect()  network only; reads nothing it will later mutate
    merge()    pure, applies collected facts to SyncState

so a failure in collect() leaves the cached record untouched. After every
entity (success or failure) the full state is persisted before moving on.

Rules Applied:
    - #23 Exception Handling: per-entity errors recorded, fatal errors propagate
    - #15 Logging Standards: entity outcome INFO, entity error WARNING
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from vendor_sync.core.exceptions import DataValidationError, EntityProcessingError, RpcError
from vendor_sync.logging.context import get_sync_logger, sync_context

if TYPE_CHECKING:
    from vendor_sync.chain.ports import ChainClient
    from vendor_sync.config.sources import SourceKey
    from vendor_sync.state.models import Deployment, SyncState
    from vendor_sync.state.store import ProgressStore
    from vendor_sync.sync.batch_fetcher import BatchEventFetcher

DEFAULT_ENTITY_DELAY = 0.2

# Errors scoped to one entity; anything else aborts the run.
ENTITY_ERRORS: tuple[type[Exception], ...] = (RpcError, DataValidationError, EntityProcessingError)

CollectedT = TypeVar("CollectedT")


class EntityStatus(StrEnum):
    """Schedule 상태."""

    UNSEEN = "unseen"
    STALE = "stale"
    FRESH = "fresh"


class EntityOutcome(StrEnum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ScheduleDecision:
    """Recheck 판단 결과.

    Attributes:
        status: UNSEEN / STALE / FRESH
        from_block: 조회 시작 블록 (FRESH면 None)
        elapsed: 마지막 처리 후 경과 블록 수 (UNSEEN이면 None)
    """

    status: EntityStatus
    from_block: int | None
    elapsed: int | None = None

    @property
    def is_due(self) -> bool:
        return self.status is not EntityStatus.FRESH


def schedule(
    deployment_block: int,
    last_processed_block: int | None,
    head: int,
    recheck_interval_blocks: int,
    *,
    has_gaps: bool = False,
) -> ScheduleDecision:
    """Decide whether an entity must be (re)queried.

    An entity with open gaps is always due so the gaps get retried.

    Example:
        >>> schedule(900, 1000, 1100, 50_000).status
        <EntityStatus.FRESH: 'fresh'>
        >>> schedule(900, 1000, 51_001, 50_000).from_block
        1001
    """
    if last_processed_block is None:
        return ScheduleDecision(EntityStatus.UNSEEN, from_block=deployment_block)

    elapsed = head - last_processed_block
    if elapsed < recheck_interval_blocks and not has_gaps:
        return ScheduleDecision(EntityStatus.FRESH, from_block=None, elapsed=elapsed)
    return ScheduleDecision(EntityStatus.STALE, from_block=last_processed_block + 1, elapsed=elapsed)


@dataclass
class ProcessSummary:
    """process_all() 집계."""

    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    def record(self, address: str, outcome: EntityOutcome, error: str | None = None) -> None:
        if outcome is EntityOutcome.PROCESSED:
            self.processed += 1
        elif outcome is EntityOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.errors[address] = error or "unknown error"

    @property
    def total(self) -> int:
        return self.processed + self.skipped + self.failed


class EntityProcessor(ABC, Generic[CollectedT]):
    """Router/Vault processor 공통 로직.

    Subclasses implement collect() (network) and merge() (pure), plus
    refresh_cached() for entities that are not due this run.
    """

    kind: ClassVar[SourceKey]

    def __init__(
        self,
        client: ChainClient,
        fetcher: BatchEventFetcher,
        store: ProgressStore,
        *,
        recheck_interval_blocks: int,
        entity_delay: float = DEFAULT_ENTITY_DELAY,
    ) -> None:
        self._client = client
        self._fetcher = fetcher
        self._store = store
        self._recheck_interval_blocks = recheck_interval_blocks
        self._entity_delay = entity_delay

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def gap_scope(self, address: str) -> str:
        return f"{self.kind}:{address}"

    @abstractmethod
    async def collect(
        self,
        deployment: Deployment,
        state: SyncState,
        from_block: int,
        head: int,
    ) -> CollectedT:
        """Fetch everything needed for this entity. Must not mutate ``state``."""

    @abstractmethod
    def merge(self, deployment: Deployment, state: SyncState, collected: CollectedT, head: int) -> str:
        """Apply collected facts to ``state``. Returns a short summary for the log."""

    def refresh_cached(self, deployment: Deployment, state: SyncState) -> bool:
        """Recompute derived fields of a fresh entity without network access.

        Returns:
            True if the cached record changed.
        """
        return False

    @abstractmethod
    def record_error(self, deployment: Deployment, state: SyncState, error: str) -> None:
        """Store ``error`` on the entity record without touching its facts."""

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    async def process_all(
        self,
        deployments: list[Deployment],
        state: SyncState,
        head: int,
    ) -> ProcessSummary:
        """Process every cached deployment in order.

        Raises:
            PersistenceError: state could not be saved (fatal)
        """
        with sync_context(source=str(self.kind)):
            return await self._process_all(deployments, state, head)

    async def _process_all(
        self,
        deployments: list[Deployment],
        state: SyncState,
        head: int,
    ) -> ProcessSummary:
        summary = ProcessSummary()
        log = get_sync_logger()
        log.info("Processing {} {}s at head {}", len(deployments), self.kind, head)

        for i, deployment in enumerate(deployments, start=1):
            outcome, error = await self.process_one(deployment, state, head, position=(i, len(deployments)))
            summary.record(deployment.address, outcome, error)
            if outcome is not EntityOutcome.SKIPPED and i < len(deployments):
                await asyncio.sleep(self._entity_delay)

        log.info(
            "{} pass done: {} processed, {} skipped, {} failed",
            str(self.kind).capitalize(),
            summary.processed,
            summary.skipped,
            summary.failed,
        )
        return summary

    async def process_one(
        self,
        deployment: Deployment,
        state: SyncState,
        head: int,
        *,
        position: tuple[int, int] = (1, 1),
    ) -> tuple[EntityOutcome, str | None]:
        with sync_context(source=str(self.kind), entity=deployment.address):
            return await self._process_one(deployment, state, head, position)

    async def _process_one(
        self,
        deployment: Deployment,
        state: SyncState,
        head: int,
        position: tuple[int, int],
    ) -> tuple[EntityOutcome, str | None]:
        address = deployment.address
        log = get_sync_logger()
        prefix = f"[{position[0]}/{position[1]}]"

        decision = schedule(
            deployment.deployment_block,
            state.checkpoint.processed_block(self.kind, address),
            head,
            self._recheck_interval_blocks,
            has_gaps=bool(state.gaps_for(self.gap_scope(address))),
        )

        if not decision.is_due:
            if self.refresh_cached(deployment, state):
                self._store.save(state)
                log.debug("{} {} refreshed from cache", prefix, address)
            log.debug(
                "{} Skipping {} (checked {} blocks ago, recheck at {})",
                prefix,
                address,
                decision.elapsed,
                self._recheck_interval_blocks,
            )
            return EntityOutcome.SKIPPED, None

        assert decision.from_block is not None
        log.info(
            "{} {} {} from block {}",
            prefix,
            "Analyzing" if decision.status is EntityStatus.UNSEEN else "Re-checking",
            address,
            decision.from_block,
        )

        try:
            collected = await self.collect(deployment, state, decision.from_block, head)
        except ENTITY_ERRORS as e:
            message = str(e)
            log.warning("{} ✗ Error processing {}: {}", prefix, address, message)
            self.record_error(deployment, state, message)
            self._store.save(state)
            return EntityOutcome.FAILED, message

        summary = self.merge(deployment, state, collected, head)
        state.checkpoint.mark_processed(self.kind, address, head)
        record = state.records(self.kind).get(address)
        if record is not None:
            record.last_processed_block = state.checkpoint.processed_block(self.kind, address)
            record.last_error = None
        self._store.save(state)
        log.info("{} ✓ {}", prefix, summary)
        return EntityOutcome.PROCESSED, None


def unique_extend(target: list[Any], values: list[Any]) -> bool:
    """Append values not already in ``target`` (order kept). Returns True if anything was added."""
    added = False
    for value in values:
        if value not in target:
            target.append(value)
            added = True
    return added
