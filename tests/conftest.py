"""Shared fixtures for tests.

이 모듈은 테스트에서 공통으로 사용되는 픽스처와 in-memory fake를 제공합니다.

Rules Applied:
    - #17 Testing Standards: Pytest fixtures, no network
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from vendor_sync.chain.events import ChainEvent, ConfigSet, ContractDeployed, EventFilter, ProxyCreated
from vendor_sync.config.settings import SyncSettings
from vendor_sync.core.exceptions import RpcTransientError
from vendor_sync.state.backend import MemoryBackend
from vendor_sync.vendors.registry import CompositeDetail, OracleRegistry, RegistryEntry

# ---------------------------------------------------------------------------
# 디렉토리 경로 → pytest 마커 자동 매핑
# ---------------------------------------------------------------------------
_DIR_MARKER_MAP: dict[str, str] = {
    "/sync/": "sync",
    "/cli/": "integration",
    "/chain/": "unit",
    "/core/": "unit",
    "/config/": "unit",
    "/state/": "unit",
    "/vendors/": "unit",
    "/logging/": "unit",
}


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """디렉토리 경로 기반 자동 마커 부여."""
    for item in items:
        fspath = str(item.fspath)
        for dir_pattern, marker_name in _DIR_MARKER_MAP.items():
            if dir_pattern in fspath:
                item.add_marker(getattr(pytest.mark, marker_name))
                break


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


def addr(n: int) -> str:
    """Deterministic 20-byte address for tests (``addr(1)`` → 0x00..01)."""
    return "0x" + f"{n:040x}"


ROUTER_FACTORY = addr(0xF1)
VAULT_FACTORY = addr(0xF2)

# registry adapters
CHAINLINK_ADAPTER = addr(0xC1)
PYTH_ADAPTER = addr(0xC2)
REDSTONE_ADAPTER = addr(0xC3)
CROSS_ADAPTER = addr(0xC4)
BROKEN_CROSS_ADAPTER = addr(0xC5)
UNLABELED_ADAPTER = addr(0xC6)
ZERO = "0x" + "0" * 40

# assets
WETH = addr(0xA1)
USDC = addr(0xA2)
WBTC = addr(0xA3)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


FailPredicate = Callable[[EventFilter, int, int], bool]


class FakeChainClient:
    """In-memory ChainClient.

    Events are keyed by emitting address (lowercase); ``fail`` decides per
    query whether to raise RpcTransientError. Every call is recorded.
    """

    def __init__(
        self,
        head: int = 100_000,
        *,
        events: list[ChainEvent] | None = None,
        calls: dict[tuple[str, str], object] | None = None,
        fail: FailPredicate | None = None,
    ) -> None:
        self.head = head
        self.events: list[ChainEvent] = list(events or [])
        self.call_results: dict[tuple[str, str], object] = {
            (address.lower(), signature): value for (address, signature), value in (calls or {}).items()
        }
        self.fail = fail
        self.height_calls = 0
        self.queries: list[tuple[str, int, int]] = []
        self.calls_made: list[tuple[str, str]] = []

    @property
    def network_calls(self) -> int:
        return self.height_calls + len(self.queries) + len(self.calls_made)

    def add_events(self, *events: ChainEvent) -> None:
        self.events.extend(events)

    async def current_height(self) -> int:
        self.height_calls += 1
        return self.head

    async def query_events(self, event_filter: EventFilter, from_block: int, to_block: int) -> list[ChainEvent]:
        self.queries.append((event_filter.address, from_block, to_block))
        if self.fail is not None and self.fail(event_filter, from_block, to_block):
            raise RpcTransientError(
                "query returned more than 10000 results",
                context={"from_block": from_block, "to_block": to_block},
            )
        matched = [
            e
            for e in self.events
            if e.address.lower() == event_filter.address.lower()
            and from_block <= e.block_number <= to_block
            and isinstance(e, event_filter.event_types)
        ]
        return sorted(matched, key=lambda e: (e.block_number, e.log_index))

    async def call(self, address: str, signature: str, output_type: str = "address") -> object:
        self.calls_made.append((address, signature))
        value = self.call_results.get((address.lower(), signature))
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise RpcTransientError("execution reverted", context={"to": address, "call": signature})
        return value


def router_deployed(router: str, block: int, log_index: int = 0) -> ContractDeployed:
    return ContractDeployed(
        address=ROUTER_FACTORY,
        block_number=block,
        log_index=log_index,
        router=router,
        deployer=addr(0xDE),
        timestamp=1_700_000_000,
    )


def vault_created(vault: str, block: int, log_index: int = 0) -> ProxyCreated:
    return ProxyCreated(
        address=VAULT_FACTORY,
        block_number=block,
        log_index=log_index,
        proxy=vault,
        upgradeable=True,
        implementation=addr(0x1111),
    )


def config_set(router: str, block: int, asset0: str, asset1: str, oracle: str, log_index: int = 0) -> ConfigSet:
    return ConfigSet(
        address=router,
        block_number=block,
        log_index=log_index,
        asset0=asset0,
        asset1=asset1,
        oracle=oracle,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> OracleRegistry:
    """Chainlink / Pyth / RedStone / Cross adapters + escrow + broken cross."""
    entries = [
        RegistryEntry(address=CHAINLINK_ADAPTER, provider_label="Chainlink Data Feeds"),
        RegistryEntry(address=PYTH_ADAPTER, provider_label="Pyth Network"),
        RegistryEntry(address=REDSTONE_ADAPTER, provider_label="RedStone Pull"),
        RegistryEntry(address=CROSS_ADAPTER, provider_label="Cross"),
        RegistryEntry(address=BROKEN_CROSS_ADAPTER, provider_label="Cross"),
        RegistryEntry(address=UNLABELED_ADAPTER, provider_label=None),
        RegistryEntry(address=ZERO, provider_label="Escrow"),
    ]
    composites = [
        CompositeDetail(composite_address=CROSS_ADAPTER, leg_a="Chainlink", leg_b="Pyth Network"),
        CompositeDetail(composite_address=BROKEN_CROSS_ADAPTER, error="execution reverted"),
    ]
    return OracleRegistry(entries, composites)


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def settings(tmp_path: Path) -> SyncSettings:
    """No-delay settings rooted in tmp_path."""
    return SyncSettings(
        rpc_url="http://localhost:8545",
        router_factory_address=ROUTER_FACTORY,
        router_factory_start_block=1_000,
        evault_factory_address=VAULT_FACTORY,
        evault_factory_start_block=1_000,
        batch_delay_seconds=0,
        entity_delay_seconds=0,
        state_dir=tmp_path / "state",
        oracle_registry_path=tmp_path / "euler-oracles.json",
        cross_oracle_path=tmp_path / "cross-oracle-analysis.json",
        log_dir=tmp_path / "logs",
    )
