"""VaultProcessor — oracle()/asset() per EVault, vendors derived from routers.

A vault's vendor set is a view over router facts: when the vault's oracle
is a known router, it is the union over every adapter configured for the
vault's asset; otherwise the oracle itself is classified. Fresh vaults
are not re-queried, but their view is re-derived from the cached
oracle/asset so router updates reach them without network access.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from vendor_sync.config.sources import SourceKey
from vendor_sync.core.exceptions import EntityProcessingError
from vendor_sync.state.models import VaultRecord
from vendor_sync.sync.processor import DEFAULT_ENTITY_DELAY, EntityProcessor
from vendor_sync.vendors.attributor import vendor_type_for, vendors_for_asset
from vendor_sync.vendors.classification import COMPOSITE_LABEL, CompositeVendor

if TYPE_CHECKING:
    from vendor_sync.chain.ports import ChainClient
    from vendor_sync.state.models import Deployment, SyncState
    from vendor_sync.state.store import ProgressStore
    from vendor_sync.sync.batch_fetcher import BatchEventFetcher
    from vendor_sync.vendors.attributor import VendorAttributor


@dataclass(frozen=True)
class VaultFacts:
    """vault.oracle() / vault.asset() 결과."""

    oracle: str
    asset: str


def derive_vendors(state: SyncState, attributor: VendorAttributor, oracle: str, asset: str) -> tuple[list[str], str]:
    """(vendors, vendor_type) for a vault priced through ``oracle``."""
    router = state.find_router(oracle)
    if router is not None:
        vendors = vendors_for_asset(router, asset)
        return vendors, vendor_type_for(vendors)

    classification = attributor.classify(oracle)
    if isinstance(classification, CompositeVendor):
        return list(classification.vendor_names()), COMPOSITE_LABEL
    return [classification.label], classification.label


class VaultProcessor(EntityProcessor[VaultFacts]):
    """EVault oracle/asset 조회 및 vendor 파생."""

    kind = SourceKey.VAULT

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

    async def collect(
        self,
        deployment: Deployment,
        state: SyncState,
        from_block: int,
        head: int,
    ) -> VaultFacts:
        oracle = await self._client.call(deployment.address, "oracle()")
        asset = await self._client.call(deployment.address, "asset()")
        if not isinstance(oracle, str) or not isinstance(asset, str) or not oracle or not asset:
            raise EntityProcessingError(
                "Failed to get oracle or asset address",
                context={"vault": deployment.address, "oracle": oracle, "asset": asset},
            )
        return VaultFacts(oracle=oracle, asset=asset)

    def merge(self, deployment: Deployment, state: SyncState, collected: VaultFacts, head: int) -> str:
        record = state.vaults.get(deployment.address) or VaultRecord(
            address=deployment.address,
            deployment_block=deployment.deployment_block,
        )
        record.oracle = collected.oracle
        record.asset = collected.asset
        record.vendors, record.vendor_type = derive_vendors(
            state, self._attributor, collected.oracle, collected.asset
        )
        state.vaults[deployment.address] = record
        return f"Vendors: {', '.join(record.vendors) or '-'} ({record.vendor_type})"

    def refresh_cached(self, deployment: Deployment, state: SyncState) -> bool:
        record = state.vaults.get(deployment.address)
        if record is None or record.oracle is None or record.asset is None:
            return False
        vendors, vendor_type = derive_vendors(state, self._attributor, record.oracle, record.asset)
        if vendors == record.vendors and vendor_type == record.vendor_type:
            return False
        record.vendors = vendors
        record.vendor_type = vendor_type
        return True

    def record_error(self, deployment: Deployment, state: SyncState, error: str) -> None:
        record = state.vaults.get(deployment.address)
        if record is None:
            record = VaultRecord(address=deployment.address, deployment_block=deployment.deployment_block)
            state.vaults[deployment.address] = record
        record.last_error = error
