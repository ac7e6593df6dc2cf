"""SyncService — one full synchronization run.

Run order:
    0. configuration check for every source in scope (no network yet)
    1. chain head
    2. vault discovery, router discovery
    3. router processing (known-vault set = vault deployment cache)
    4. vault processing (vendors derived from router records)

Features:
    - Fatal errors (configuration, registry, persistence) abort the run
    - Per-entity errors are recorded and counted, the run continues
    - SyncReport distinguishes "succeeded" from "fully complete"

Rules Applied:
    - #10 Python Standards: Modern typing, async-ready design
    - #15 Logging Standards: run_id bound to every line of the run
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from vendor_sync.config.settings import get_settings
from vendor_sync.config.sources import FactorySource, SourceKey, router_source, vault_source
from vendor_sync.logging.context import generate_run_id, get_sync_logger, sync_context
from vendor_sync.state.backend import FileBackend
from vendor_sync.state.store import DeploymentStore, ProgressStore
from vendor_sync.sync.batch_fetcher import BatchEventFetcher
from vendor_sync.sync.discovery import DeploymentDiscovery
from vendor_sync.sync.routers import RouterProcessor
from vendor_sync.sync.vaults import VaultProcessor
from vendor_sync.vendors.attributor import VendorAttributor

if TYPE_CHECKING:
    from vendor_sync.chain.ports import ChainClient
    from vendor_sync.config.settings import SyncSettings
    from vendor_sync.state.backend import StorageBackend
    from vendor_sync.state.models import Deployment, SyncState
    from vendor_sync.sync.processor import ProcessSummary
    from vendor_sync.vendors.registry import OracleRegistry


class SyncScope(StrEnum):
    """Run 범위."""

    ALL = "all"
    ROUTERS = "routers"
    VAULTS = "vaults"

    @property
    def sources(self) -> tuple[SourceKey, ...]:
        if self is SyncScope.ROUTERS:
            return (SourceKey.ROUTER,)
        if self is SyncScope.VAULTS:
            return (SourceKey.VAULT,)
        return (SourceKey.VAULT, SourceKey.ROUTER)


class SyncReport(BaseModel):
    """Run 결과 요약.

    ``complete``는 실패 entity와 미해결 gap이 모두 없을 때만 True입니다.
    run 자체가 끝났다는 사실(예외 없이 반환)과는 별개입니다.
    """

    run_id: str
    scope: SyncScope
    head: int
    discovered: dict[str, int] = Field(default_factory=dict)
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: dict[str, str] = Field(default_factory=dict)
    open_gaps: int = 0

    @property
    def complete(self) -> bool:
        return self.failed == 0 and self.open_gaps == 0

    def add(self, summary: ProcessSummary) -> None:
        self.processed += summary.processed
        self.skipped += summary.skipped
        self.failed += summary.failed
        self.errors.update(summary.errors)


class SyncService:
    """Discovery + entity processing orchestrator.

    Args:
        client: ChainClient (JsonRpcChainClient 또는 테스트 fake)
        registry: OracleRegistry (네트워크 호출 전에 로드되어 있어야 함)
        settings: SyncSettings (None이면 get_settings())
        backend: StorageBackend (None이면 FileBackend)

    Example:
        >>> async with JsonRpcChainClient.from_settings(settings) as client:
        ...     service = SyncService(client, registry, settings)
        ...     report = await service.run()
    """

    def __init__(
        self,
        client: ChainClient,
        registry: OracleRegistry,
        settings: SyncSettings | None = None,
        backend: StorageBackend | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client
        self.registry = registry
        self.backend = backend or FileBackend()

        self.progress = ProgressStore(self.backend, self.settings.progress_path)
        self.sources: dict[SourceKey, FactorySource] = {
            SourceKey.ROUTER: router_source(self.settings),
            SourceKey.VAULT: vault_source(self.settings),
        }
        self.deployment_stores: dict[SourceKey, DeploymentStore] = {
            key: DeploymentStore(self.backend, self.settings.get_deployments_path(key)) for key in self.sources
        }
        self.fetcher = BatchEventFetcher(client, delay=self.settings.batch_delay_seconds)
        self.discoveries: dict[SourceKey, DeploymentDiscovery] = {
            key: DeploymentDiscovery(source, self.fetcher, self.deployment_stores[key], self.progress)
            for key, source in self.sources.items()
        }

    def ensure_configured(self, state: SyncState, scope: SyncScope) -> None:
        """Cold-start 설정 확인 (네트워크 호출 전).

        Raises:
            ConfigurationError: start block이 필요한데 설정되지 않음
        """
        for key in scope.sources:
            discovery = self.discoveries[key]
            discovery.resolver.ensure_configured(
                state.checkpoint.factory_block(key),
                len(discovery.load_cached()),
            )

    def attributor_for(self, vault_deployments: list[Deployment]) -> VendorAttributor:
        return VendorAttributor(self.registry, known_vaults=[d.address for d in vault_deployments])

    async def run(self, scope: SyncScope = SyncScope.ALL) -> SyncReport:
        """Run one synchronization pass.

        Raises:
            ConfigurationError: cold start without a start block (before any network call)
            PersistenceError: deployment cache unreadable, or state could not be saved
        """
        run_id = generate_run_id()
        with sync_context(run_id=run_id):
            return await self._run(run_id, scope)

    async def _run(self, run_id: str, scope: SyncScope) -> SyncReport:
        log = get_sync_logger()
        state = self.progress.load()
        self.ensure_configured(state, scope)

        head = await self.client.current_height()
        log.info("Sync run {} ({}) at head {}", run_id, scope, head)
        report = SyncReport(run_id=run_id, scope=scope, head=head)

        deployments: dict[SourceKey, list[Deployment]] = {}
        for key in scope.sources:
            result = await self.discoveries[key].discover(state, head)
            deployments[key] = result.deployments
            report.discovered[str(key)] = len(result.added)

        vault_deployments = deployments.get(SourceKey.VAULT)
        if vault_deployments is None:
            vault_deployments = self.deployment_stores[SourceKey.VAULT].load()
        attributor = self.attributor_for(vault_deployments)

        if SourceKey.ROUTER in deployments:
            routers = RouterProcessor(
                self.client,
                self.fetcher,
                self.progress,
                attributor,
                recheck_interval_blocks=self.settings.recheck_interval_blocks,
                entity_delay=self.settings.entity_delay_seconds,
            )
            report.add(await routers.process_all(deployments[SourceKey.ROUTER], state, head))

        if SourceKey.VAULT in deployments:
            vaults = VaultProcessor(
                self.client,
                self.fetcher,
                self.progress,
                attributor,
                recheck_interval_blocks=self.settings.recheck_interval_blocks,
                entity_delay=self.settings.entity_delay_seconds,
            )
            report.add(await vaults.process_all(deployments[SourceKey.VAULT], state, head))

        report.open_gaps = state.open_gap_count
        if report.complete:
            log.success("Sync run {} complete: {} processed, {} skipped", run_id, report.processed, report.skipped)
        else:
            log.warning(
                "Sync run {} finished with {} failed entities and {} open gaps",
                run_id,
                report.failed,
                report.open_gaps,
            )
        return report
