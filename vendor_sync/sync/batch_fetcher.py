"""BatchEventFetcher — bounded, delay-gated event queries with halving retry.

A range is partitioned into contiguous batches that run strictly one after
another. A failed batch is re-partitioned into batches of half the size
and retried in place; at the floor size a failing batch is dropped and
reported as a gap instead of raising.

Work is kept in an explicit deque (front = next batch to query), so the
retry depth is bounded by the number of halvings rather than the call
stack, and events come back in ascending block order.

Rules Applied:
    - #23 Exception Handling: RpcError recovered locally, never re-raised
    - #15 Logging Standards: batch progress DEBUG, dropped range WARNING
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from vendor_sync.config.settings import DEFAULT_BATCH_SIZE, MIN_BATCH_SIZE
from vendor_sync.core.exceptions import RpcError
from vendor_sync.state.models import BlockRange

if TYPE_CHECKING:
    from vendor_sync.chain.events import ChainEvent, EventFilter
    from vendor_sync.chain.ports import ChainClient

DEFAULT_BATCH_DELAY = 0.2


@dataclass
class FetchResult:
    """fetch() 결과.

    Attributes:
        events: 블록 오름차순 이벤트
        gaps: floor 크기에서도 실패해 버려진 구간
        attempts: 실제 RPC 조회 횟수
    """

    events: list[ChainEvent] = field(default_factory=list)
    gaps: list[BlockRange] = field(default_factory=list)
    attempts: int = 0

    @property
    def complete(self) -> bool:
        return not self.gaps

    def extend(self, other: FetchResult) -> None:
        self.events.extend(other.events)
        self.gaps = merge_ranges([*self.gaps, *other.gaps])
        self.attempts += other.attempts


def partition(from_block: int, to_block: int, size: int) -> list[tuple[int, int]]:
    """Split [from_block, to_block] into contiguous inclusive batches of ``size``."""
    batches: list[tuple[int, int]] = []
    start = from_block
    while start <= to_block:
        end = min(start + size - 1, to_block)
        batches.append((start, end))
        start = end + 1
    return batches


def merge_ranges(ranges: list[BlockRange]) -> list[BlockRange]:
    """Sort and coalesce overlapping or adjacent ranges."""
    merged: list[BlockRange] = []
    for r in sorted(ranges, key=lambda r: (r.from_block, r.to_block)):
        if merged and r.from_block <= merged[-1].to_block + 1:
            last = merged[-1]
            merged[-1] = BlockRange(from_block=last.from_block, to_block=max(last.to_block, r.to_block))
        else:
            merged.append(r)
    return merged


class BatchEventFetcher:
    """Sequential batch fetcher over a ChainClient.

    Args:
        client: ChainClient 구현체
        batch_size: 최초 batch 크기 (기본 10000)
        min_batch_size: 재시도 floor (기본 1000)
        delay: 매 batch 시도 후 대기 시간 (초, 성공/실패 무관)

    Example:
        >>> fetcher = BatchEventFetcher(client, delay=0.2)
        >>> result = await fetcher.fetch(router_filter, 19_400_000, head)
        >>> result.events, result.gaps
    """

    def __init__(
        self,
        client: ChainClient,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        min_batch_size: int = MIN_BATCH_SIZE,
        delay: float = DEFAULT_BATCH_DELAY,
    ) -> None:
        if min_batch_size < 1 or batch_size < min_batch_size:
            msg = f"invalid batch sizes: batch_size={batch_size}, min_batch_size={min_batch_size}"
            raise ValueError(msg)
        self._client = client
        self._batch_size = batch_size
        self._min_batch_size = min_batch_size
        self._delay = delay

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def min_batch_size(self) -> int:
        return self._min_batch_size

    def next_batch_size(self, size: int) -> int | None:
        """Batch size to retry a failed batch with, or None at the floor."""
        if size <= self._min_batch_size:
            return None
        return max(size // 2, self._min_batch_size)

    async def fetch(
        self,
        event_filter: EventFilter,
        from_block: int,
        to_block: int,
    ) -> FetchResult:
        """Query [from_block, to_block] in batches.

        Never raises RpcError: ranges that fail at the floor size end up in
        ``FetchResult.gaps``. Decode errors (EventDecodeError) propagate.
        """
        result = FetchResult()
        if from_block > to_block:
            return result

        work: deque[tuple[int, int, int]] = deque(
            (start, end, self._batch_size) for start, end in partition(from_block, to_block, self._batch_size)
        )
        dropped: list[BlockRange] = []

        while work:
            start, end, size = work.popleft()
            result.attempts += 1
            try:
                logger.debug("Querying {} blocks {}-{}", event_filter.describe(), start, end)
                events = await self._client.query_events(event_filter, start, end)
            except RpcError as e:
                # effective size: a short tail batch retries at its own span
                next_size = self.next_batch_size(min(size, end - start + 1))
                if next_size is None:
                    logger.warning(
                        "Dropping blocks {}-{} for {} after retries at floor size: {}",
                        start,
                        end,
                        event_filter.describe(),
                        e,
                    )
                    dropped.append(BlockRange(from_block=start, to_block=end))
                else:
                    logger.debug(
                        "Query {}-{} failed ({}), retrying with batch size {}",
                        start,
                        end,
                        e.message,
                        next_size,
                    )
                    work.extendleft(reversed([(s, t, next_size) for s, t in partition(start, end, next_size)]))
            else:
                result.events.extend(events)
                logger.debug("  Found {} events in {}-{}", len(events), start, end)
            await asyncio.sleep(self._delay)

        result.gaps = merge_ranges(dropped)
        return result

    async def fetch_ranges(self, event_filter: EventFilter, ranges: list[BlockRange]) -> FetchResult:
        """Fetch several ranges (e.g. previously recorded gaps) in order."""
        combined = FetchResult()
        for block_range in sorted(ranges, key=lambda r: r.from_block):
            combined.extend(await self.fetch(event_filter, block_range.from_block, block_range.to_block))
        return combined
