"""Factory discovery sources (router factory, EVault factory).

Each source knows its factory contract, the deployment event it emits,
the setting that provides its cold-start block, and how to rescan when a
deployment cache exists without a checkpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from vendor_sync.chain.events import ChainEvent, ContractDeployed, EventFilter, ProxyCreated

if TYPE_CHECKING:
    from vendor_sync.config.settings import SyncSettings


class SourceKey(StrEnum):
    """Discovery source 식별자."""

    ROUTER = "router"
    VAULT = "vault"


class RescanPolicy(StrEnum):
    """체크포인트 없이 캐시만 존재할 때의 재스캔 시작점."""

    LATEST_CACHED = "latest_cached"  # 캐시의 가장 최근 deployment 블록부터
    RECENT_WINDOW = "recent_window"  # head - recent_window 부터


@dataclass(frozen=True)
class FactorySource:
    """단일 factory discovery source 정의."""

    key: SourceKey
    factory_address: str
    deployment_event: type[ChainEvent]
    start_block_setting: str
    start_block: int | None
    rescan_policy: RescanPolicy
    recent_window: int = 10_000

    @property
    def event_filter(self) -> EventFilter:
        return EventFilter(self.factory_address, (self.deployment_event,))

    @property
    def gap_scope(self) -> str:
        return f"factory:{self.key}"


def router_source(settings: SyncSettings) -> FactorySource:
    """EulerRouter factory (``ContractDeployed``)."""
    return FactorySource(
        key=SourceKey.ROUTER,
        factory_address=settings.router_factory_address,
        deployment_event=ContractDeployed,
        start_block_setting="ROUTER_FACTORY_START_BLOCK",
        start_block=settings.router_factory_start_block,
        rescan_policy=RescanPolicy.LATEST_CACHED,
        recent_window=settings.recent_window_blocks,
    )


def vault_source(settings: SyncSettings) -> FactorySource:
    """EVault factory (``ProxyCreated``)."""
    return FactorySource(
        key=SourceKey.VAULT,
        factory_address=settings.evault_factory_address,
        deployment_event=ProxyCreated,
        start_block_setting="EVAULT_FACTORY_START_BLOCK",
        start_block=settings.evault_factory_start_block,
        rescan_policy=RescanPolicy.RECENT_WINDOW,
        recent_window=settings.recent_window_blocks,
    )
