"""RangeResolver — which factory block range still needs to be queried.

Policy (checked in order):
    1. checkpoint present           → from checkpoint + 1, query
    2. no checkpoint, cache present → bounded rescan (source policy), query
    3. cold start                   → configured start block, or ConfigurationError

The resolver never falls back to block 0 on a cold start: scanning the
whole chain against a public endpoint is never what the operator wanted.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from vendor_sync.config.sources import RescanPolicy
from vendor_sync.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from vendor_sync.config.sources import FactorySource
    from vendor_sync.state.models import Deployment


@dataclass(frozen=True)
class RangeDecision:
    """Range resolution 결과.

    Attributes:
        from_block: 조회 시작 블록 (inclusive)
        should_query: factory 조회 여부
        reason: 어떤 규칙이 적용되었는지 (로그용)
    """

    from_block: int
    should_query: bool
    reason: str


class RangeResolver:
    """Factory source 하나에 대한 range 결정기."""

    def __init__(self, source: FactorySource) -> None:
        self._source = source

    @property
    def source(self) -> FactorySource:
        return self._source

    def ensure_configured(self, checkpoint: int | None, cached_count: int) -> None:
        """Cold start인데 start block이 없으면 즉시 실패.

        네트워크 호출 전에 호출해야 합니다.

        Raises:
            ConfigurationError: 설정 이름을 포함한 안내 메시지
        """
        if checkpoint is not None or cached_count > 0:
            return
        if self._source.start_block is None:
            setting = self._source.start_block_setting
            raise ConfigurationError(
                f"{setting} is not set. Add {setting}=<deployment_block> to your .env "
                f"(the factory deployment block, e.g. from a block explorer).",
                context={
                    "setting": setting,
                    "factory": self._source.factory_address,
                    "source": str(self._source.key),
                },
            )

    def resolve(
        self,
        checkpoint: int | None,
        deployments: Sequence[Deployment],
        head: int,
    ) -> RangeDecision:
        """Decide where the next factory scan starts.

        Raises:
            ConfigurationError: cold start without a configured start block
        """
        if checkpoint is not None:
            return RangeDecision(
                from_block=checkpoint + 1,
                should_query=True,
                reason=f"resuming after checkpoint {checkpoint}",
            )

        if deployments:
            if self._source.rescan_policy is RescanPolicy.LATEST_CACHED:
                from_block = max(d.deployment_block for d in deployments)
                reason = f"no checkpoint, rescanning from latest cached deployment {from_block}"
            else:
                from_block = max(head - self._source.recent_window, 0)
                reason = f"no checkpoint, rescanning the last {self._source.recent_window} blocks"
            return RangeDecision(from_block=from_block, should_query=True, reason=reason)

        self.ensure_configured(checkpoint, len(deployments))
        start_block = self._source.start_block
        assert start_block is not None  # ensure_configured raised otherwise
        return RangeDecision(
            from_block=start_block,
            should_query=True,
            reason=f"first run, starting from {self._source.start_block_setting}={start_block}",
        )
