"""Tests for vendor_sync/sync/processor.py, routers.py and vaults.py."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from tests.conftest import (
    CHAINLINK_ADAPTER,
    CROSS_ADAPTER,
    PYTH_ADAPTER,
    REDSTONE_ADAPTER,
    USDC,
    WBTC,
    WETH,
    FakeChainClient,
    addr,
    config_set,
)
from vendor_sync.chain.events import ResolvedVaultSet
from vendor_sync.config.sources import SourceKey
from vendor_sync.core.exceptions import EventDecodeError, RpcTransientError
from vendor_sync.state.backend import MemoryBackend
from vendor_sync.state.models import Deployment, RouterRecord, SyncState, VaultRecord
from vendor_sync.state.store import ProgressStore
from vendor_sync.sync.batch_fetcher import BatchEventFetcher
from vendor_sync.sync.processor import EntityOutcome, EntityStatus, ProcessSummary, schedule, unique_extend
from vendor_sync.sync.routers import RouterProcessor
from vendor_sync.sync.vaults import VaultProcessor, derive_vendors
from vendor_sync.vendors.attributor import VendorAttributor
from vendor_sync.vendors.classification import ExternalVendor
from vendor_sync.vendors.registry import OracleRegistry, RegistryEntry

ROUTER = addr(0xB0)
VAULT = addr(0xE0)
PROGRESS = Path("state/vault-vendor-progress.json")
INTERVAL = 50_000


@pytest.fixture
def store(backend: MemoryBackend) -> ProgressStore:
    return ProgressStore(backend, PROGRESS)


def _router_processor(
    client: FakeChainClient,
    store: ProgressStore,
    registry: OracleRegistry,
) -> RouterProcessor:
    return RouterProcessor(
        client,
        BatchEventFetcher(client, delay=0),
        store,
        VendorAttributor(registry),
        recheck_interval_blocks=INTERVAL,
        entity_delay=0,
    )


def _vault_processor(
    client: FakeChainClient,
    store: ProgressStore,
    registry: OracleRegistry,
    entity_delay: float = 0,
) -> VaultProcessor:
    return VaultProcessor(
        client,
        BatchEventFetcher(client, delay=0),
        store,
        VendorAttributor(registry),
        recheck_interval_blocks=INTERVAL,
        entity_delay=entity_delay,
    )


# =============================================================================
# Scheduling
# =============================================================================


class TestSchedule:
    def test_unseen_starts_at_deployment(self) -> None:
        decision = schedule(900, None, 100_000, INTERVAL)
        assert decision.status is EntityStatus.UNSEEN
        assert decision.from_block == 900
        assert decision.is_due

    def test_recent_entity_is_fresh(self) -> None:
        decision = schedule(900, 1_000, 1_100, INTERVAL)
        assert decision.status is EntityStatus.FRESH
        assert decision.from_block is None
        assert decision.elapsed == 100
        assert not decision.is_due

    def test_stale_entity_resumes_after_last_block(self) -> None:
        decision = schedule(900, 1_000, 51_001, INTERVAL)
        assert decision.status is EntityStatus.STALE
        assert decision.from_block == 1_001

    def test_exact_interval_is_stale(self) -> None:
        assert schedule(900, 1_000, 51_000, INTERVAL).status is EntityStatus.STALE

    def test_open_gaps_force_recheck(self) -> None:
        decision = schedule(900, 1_000, 1_100, INTERVAL, has_gaps=True)
        assert decision.status is EntityStatus.STALE
        assert decision.from_block == 1_001


class TestHelpers:
    def test_unique_extend(self) -> None:
        target = ["a", "b"]
        assert unique_extend(target, ["b", "c", "c"]) is True
        assert target == ["a", "b", "c"]
        assert unique_extend(target, ["a"]) is False

    def test_process_summary(self) -> None:
        summary = ProcessSummary()
        summary.record(addr(1), EntityOutcome.PROCESSED)
        summary.record(addr(2), EntityOutcome.SKIPPED)
        summary.record(addr(3), EntityOutcome.FAILED, "execution reverted")
        assert (summary.processed, summary.skipped, summary.failed, summary.total) == (1, 1, 1, 3)
        assert summary.errors == {addr(3): "execution reverted"}


# =============================================================================
# Routers
# =============================================================================


class TestRouterProcessor:
    @pytest.mark.asyncio()
    async def test_first_pass_collects_config(
        self, registry: OracleRegistry, store: ProgressStore, backend: MemoryBackend
    ) -> None:
        client = FakeChainClient(
            head=20_000,
            events=[
                config_set(ROUTER, 1_500, WETH, USDC, CHAINLINK_ADAPTER),
                config_set(ROUTER, 1_600, WETH, USDC, CROSS_ADAPTER, log_index=1),
                config_set(ROUTER, 1_700, WBTC, USDC, CHAINLINK_ADAPTER),
                ResolvedVaultSet(address=ROUTER, block_number=1_800, vault=VAULT, asset=WETH),
            ],
        )
        state = SyncState()
        processor = _router_processor(client, store, registry)

        outcome, error = await processor.process_one(Deployment(address=ROUTER, deployment_block=1_000), state, 20_000)

        assert outcome is EntityOutcome.PROCESSED
        assert error is None
        record = state.routers[ROUTER]
        assert record.adapters == [CHAINLINK_ADAPTER, CROSS_ADAPTER]
        assert record.asset_pairs == {
            f"{WETH}-{USDC}": [CHAINLINK_ADAPTER, CROSS_ADAPTER],
            f"{WBTC}-{USDC}": [CHAINLINK_ADAPTER],
        }
        assert record.resolved_vaults == {VAULT: WETH}
        assert record.config_events_count == 3
        assert record.vault_events_count == 1
        assert record.vendor_info[CHAINLINK_ADAPTER] == ExternalVendor(name="Chainlink")
        assert record.last_processed_block == 20_000
        assert state.checkpoint.processed_block(SourceKey.ROUTER, ROUTER) == 20_000
        assert client.queries == [(ROUTER, 1_000, 10_999), (ROUTER, 11_000, 20_000)]
        assert backend.writes == 1

    @pytest.mark.asyncio()
    async def test_recheck_is_additive(self, registry: OracleRegistry, store: ProgressStore) -> None:
        client = FakeChainClient(events=[config_set(ROUTER, 1_500, WETH, USDC, CHAINLINK_ADAPTER)])
        state = SyncState()
        processor = _router_processor(client, store, registry)
        deployment = Deployment(address=ROUTER, deployment_block=1_000)
        await processor.process_one(deployment, state, 10_000)

        client.add_events(
            config_set(ROUTER, 60_000, WETH, USDC, PYTH_ADAPTER),
            config_set(ROUTER, 60_001, USDC, WBTC, REDSTONE_ADAPTER),
        )
        client.queries.clear()
        outcome, _ = await processor.process_one(deployment, state, 70_000)

        assert outcome is EntityOutcome.PROCESSED
        assert client.queries[0][1] == 10_001
        record = state.routers[ROUTER]
        assert record.adapters == [CHAINLINK_ADAPTER, PYTH_ADAPTER, REDSTONE_ADAPTER]
        assert record.asset_pairs[f"{WETH}-{USDC}"] == [CHAINLINK_ADAPTER, PYTH_ADAPTER]
        assert record.config_events_count == 3
        assert set(record.vendor_info) == set(record.adapters)
        assert record.last_processed_block == 70_000

    @pytest.mark.asyncio()
    async def test_fresh_router_is_skipped(self, registry: OracleRegistry, store: ProgressStore) -> None:
        client = FakeChainClient(events=[config_set(ROUTER, 1_500, WETH, USDC, CHAINLINK_ADAPTER)])
        state = SyncState()
        processor = _router_processor(client, store, registry)
        deployment = Deployment(address=ROUTER, deployment_block=1_000)
        await processor.process_one(deployment, state, 10_000)
        client.queries.clear()

        outcome, _ = await processor.process_one(deployment, state, 11_000)

        assert outcome is EntityOutcome.SKIPPED
        assert client.queries == []

    @pytest.mark.asyncio()
    async def test_fresh_router_reclassified_offline(self, store: ProgressStore, backend: MemoryBackend) -> None:
        state = SyncState()
        state.routers[ROUTER] = RouterRecord(address=ROUTER, deployment_block=1_000, adapters=[addr(0x77)])
        state.checkpoint.mark_processed(SourceKey.ROUTER, ROUTER, 10_000)
        client = FakeChainClient()
        registry = OracleRegistry([RegistryEntry(address=addr(0x77), provider_label="Chronicle")])
        processor = _router_processor(client, store, registry)

        outcome, _ = await processor.process_one(Deployment(address=ROUTER, deployment_block=1_000), state, 11_000)

        assert outcome is EntityOutcome.SKIPPED
        assert state.routers[ROUTER].vendor_info == {addr(0x77): ExternalVendor(name="Chronicle")}
        assert client.network_calls == 0
        assert backend.writes == 1

    @pytest.mark.asyncio()
    async def test_gap_recorded_then_retried(self, registry: OracleRegistry, store: ProgressStore) -> None:
        def fail_around_7777(event_filter: object, from_block: int, to_block: int) -> bool:
            return from_block <= 7_777 <= to_block

        client = FakeChainClient(
            events=[
                config_set(ROUTER, 1_500, WETH, USDC, CHAINLINK_ADAPTER),
                config_set(ROUTER, 7_777, WETH, USDC, PYTH_ADAPTER),
            ],
            fail=fail_around_7777,
        )
        state = SyncState()
        processor = _router_processor(client, store, registry)
        deployment = Deployment(address=ROUTER, deployment_block=1_000)

        outcome, _ = await processor.process_one(deployment, state, 20_000)

        assert outcome is EntityOutcome.PROCESSED
        gaps = state.gaps_for(f"router:{ROUTER}")
        assert len(gaps) == 1
        assert gaps[0].from_block <= 7_777 <= gaps[0].to_block
        assert state.routers[ROUTER].adapters == [CHAINLINK_ADAPTER]

        client.fail = None
        outcome, _ = await processor.process_one(deployment, state, 20_001)

        assert outcome is EntityOutcome.PROCESSED
        assert state.gaps_for(f"router:{ROUTER}") == []
        assert state.routers[ROUTER].adapters == [CHAINLINK_ADAPTER, PYTH_ADAPTER]

    @pytest.mark.asyncio()
    async def test_decode_error_isolated(
        self, registry: OracleRegistry, store: ProgressStore, backend: MemoryBackend
    ) -> None:
        state = SyncState()
        state.routers[ROUTER] = RouterRecord(address=ROUTER, deployment_block=1_000, adapters=[CHAINLINK_ADAPTER])
        state.checkpoint.mark_processed(SourceKey.ROUTER, ROUTER, 5_000)
        client = FakeChainClient()
        processor = _router_processor(client, store, registry)

        with patch.object(
            processor._fetcher, "fetch", new=AsyncMock(side_effect=EventDecodeError("ConfigSet: expected 4 topics"))
        ):
            outcome, error = await processor.process_one(
                Deployment(address=ROUTER, deployment_block=1_000), state, 100_000
            )

        assert outcome is EntityOutcome.FAILED
        assert error is not None and "expected 4 topics" in error
        record = state.routers[ROUTER]
        assert record.adapters == [CHAINLINK_ADAPTER]
        assert record.last_error == error
        assert state.checkpoint.processed_block(SourceKey.ROUTER, ROUTER) == 5_000
        assert backend.writes == 1


# =============================================================================
# Vaults
# =============================================================================


def _router_record(registry: OracleRegistry, adapters_by_pair: dict[str, list[str]]) -> RouterRecord:
    adapters = list(dict.fromkeys(a for pair in adapters_by_pair.values() for a in pair))
    return RouterRecord(
        address=ROUTER,
        deployment_block=1_000,
        adapters=adapters,
        asset_pairs=adapters_by_pair,
        vendor_info=VendorAttributor(registry).classify_all(adapters),
    )


class TestDeriveVendors:
    def test_router_oracle_uses_asset_pairs(self, registry: OracleRegistry) -> None:
        state = SyncState()
        state.routers[ROUTER] = _router_record(
            registry,
            {f"{WETH}-{USDC}": [CHAINLINK_ADAPTER, PYTH_ADAPTER], f"{WBTC}-{USDC}": [REDSTONE_ADAPTER]},
        )
        vendors, vendor_type = derive_vendors(state, VendorAttributor(registry), "0x" + ROUTER[2:].upper(), WETH)
        assert vendors == ["Chainlink", "Pyth"]
        assert vendor_type == "Multiple"

    def test_single_vendor(self, registry: OracleRegistry) -> None:
        state = SyncState()
        state.routers[ROUTER] = _router_record(registry, {f"{WBTC}-{USDC}": [REDSTONE_ADAPTER]})
        assert derive_vendors(state, VendorAttributor(registry), ROUTER, WBTC) == (["RedStone"], "RedStone")

    def test_router_without_matching_pair(self, registry: OracleRegistry) -> None:
        state = SyncState()
        state.routers[ROUTER] = _router_record(registry, {f"{WBTC}-{USDC}": [REDSTONE_ADAPTER]})
        assert derive_vendors(state, VendorAttributor(registry), ROUTER, WETH) == ([], "Unknown")

    def test_direct_composite_oracle(self, registry: OracleRegistry) -> None:
        result = derive_vendors(SyncState(), VendorAttributor(registry), CROSS_ADAPTER, WETH)
        assert result == (["Chainlink", "Pyth"], "Cross")

    def test_direct_vendor_oracle(self, registry: OracleRegistry) -> None:
        result = derive_vendors(SyncState(), VendorAttributor(registry), CHAINLINK_ADAPTER, WETH)
        assert result == (["Chainlink"], "Chainlink")

    def test_unknown_oracle(self, registry: OracleRegistry) -> None:
        assert derive_vendors(SyncState(), VendorAttributor(registry), addr(0x9999), WETH) == (["Unknown"], "Unknown")


class TestVaultProcessor:
    @pytest.mark.asyncio()
    async def test_processes_vault(self, registry: OracleRegistry, store: ProgressStore) -> None:
        state = SyncState()
        state.routers[ROUTER] = _router_record(registry, {f"{WETH}-{USDC}": [CHAINLINK_ADAPTER, CROSS_ADAPTER]})
        client = FakeChainClient(calls={(VAULT, "oracle()"): ROUTER, (VAULT, "asset()"): WETH})
        processor = _vault_processor(client, store, registry)

        outcome, _ = await processor.process_one(Deployment(address=VAULT, deployment_block=2_000), state, 30_000)

        assert outcome is EntityOutcome.PROCESSED
        record = state.vaults[VAULT]
        assert (record.oracle, record.asset) == (ROUTER, WETH)
        assert record.vendors == ["Chainlink", "Pyth"]
        assert record.vendor_type == "Multiple"
        assert record.last_processed_block == 30_000
        assert client.calls_made == [(VAULT, "oracle()"), (VAULT, "asset()")]

    @pytest.mark.asyncio()
    async def test_failure_keeps_cached_facts(
        self, registry: OracleRegistry, store: ProgressStore, backend: MemoryBackend
    ) -> None:
        state = SyncState()
        state.vaults[VAULT] = VaultRecord(
            address=VAULT,
            deployment_block=2_000,
            oracle=CHAINLINK_ADAPTER,
            asset=WETH,
            vendors=["Chainlink"],
            vendor_type="Chainlink",
            last_processed_block=10_000,
        )
        state.checkpoint.mark_processed(SourceKey.VAULT, VAULT, 10_000)
        before = state.vaults[VAULT].model_copy()
        client = FakeChainClient(calls={(VAULT, "oracle()"): RpcTransientError("execution reverted")})
        processor = _vault_processor(client, store, registry)

        outcome, error = await processor.process_one(Deployment(address=VAULT, deployment_block=2_000), state, 90_000)

        assert outcome is EntityOutcome.FAILED
        record = state.vaults[VAULT]
        assert record.last_error == error
        assert "execution reverted" in record.last_error
        assert record.model_dump(exclude={"last_error"}) == before.model_dump(exclude={"last_error"})
        assert state.checkpoint.processed_block(SourceKey.VAULT, VAULT) == 10_000
        assert backend.writes == 1
        assert store.load().vaults[VAULT].last_error == error

    @pytest.mark.asyncio()
    async def test_failure_on_unseen_vault_creates_record(self, registry: OracleRegistry, store: ProgressStore) -> None:
        state = SyncState()
        client = FakeChainClient(calls={(VAULT, "oracle()"): ROUTER, (VAULT, "asset()"): ""})
        processor = _vault_processor(client, store, registry)

        outcome, error = await processor.process_one(Deployment(address=VAULT, deployment_block=2_000), state, 30_000)

        assert outcome is EntityOutcome.FAILED
        assert error is not None and error.startswith("Failed to get oracle or asset address")
        assert state.vaults[VAULT].oracle is None
        assert state.checkpoint.processed_block(SourceKey.VAULT, VAULT) is None

    @pytest.mark.asyncio()
    async def test_success_clears_previous_error(self, registry: OracleRegistry, store: ProgressStore) -> None:
        state = SyncState()
        state.vaults[VAULT] = VaultRecord(address=VAULT, deployment_block=2_000, last_error="execution reverted")
        client = FakeChainClient(calls={(VAULT, "oracle()"): CHAINLINK_ADAPTER, (VAULT, "asset()"): WETH})
        processor = _vault_processor(client, store, registry)

        outcome, _ = await processor.process_one(Deployment(address=VAULT, deployment_block=2_000), state, 30_000)

        assert outcome is EntityOutcome.PROCESSED
        assert state.vaults[VAULT].last_error is None
        assert state.vaults[VAULT].vendors == ["Chainlink"]

    @pytest.mark.asyncio()
    async def test_fresh_vault_rederived_from_router(
        self, registry: OracleRegistry, store: ProgressStore, backend: MemoryBackend
    ) -> None:
        state = SyncState()
        state.routers[ROUTER] = _router_record(
            registry, {f"{WETH}-{USDC}": [CHAINLINK_ADAPTER, REDSTONE_ADAPTER]}
        )
        state.vaults[VAULT] = VaultRecord(
            address=VAULT,
            deployment_block=2_000,
            oracle=ROUTER,
            asset=WETH,
            vendors=["Chainlink"],
            vendor_type="Chainlink",
            last_processed_block=10_000,
        )
        state.checkpoint.mark_processed(SourceKey.VAULT, VAULT, 10_000)
        client = FakeChainClient()
        processor = _vault_processor(client, store, registry)

        outcome, _ = await processor.process_one(Deployment(address=VAULT, deployment_block=2_000), state, 11_000)

        assert outcome is EntityOutcome.SKIPPED
        assert state.vaults[VAULT].vendors == ["Chainlink", "RedStone"]
        assert state.vaults[VAULT].vendor_type == "Multiple"
        assert client.network_calls == 0
        assert backend.writes == 1

    @pytest.mark.asyncio()
    async def test_process_all_isolates_failures(self, registry: OracleRegistry, store: ProgressStore) -> None:
        good, bad = addr(0xE1), addr(0xE2)
        client = FakeChainClient(
            calls={
                (good, "oracle()"): CHAINLINK_ADAPTER,
                (good, "asset()"): WETH,
                (bad, "oracle()"): RpcTransientError("execution reverted"),
            }
        )
        processor = _vault_processor(client, store, registry, entity_delay=0.5)
        deployments = [
            Deployment(address=bad, deployment_block=2_000),
            Deployment(address=good, deployment_block=2_100),
        ]

        with patch("vendor_sync.sync.processor.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            summary = await processor.process_all(deployments, SyncState(), 30_000)

        assert (summary.processed, summary.failed) == (1, 1)
        assert set(summary.errors) == {bad}
        mock_sleep.assert_awaited_once_with(0.5)
