"""Sync state models — checkpoint, entity fact cache, deployment cache.

SyncState is the single value threaded through every stage of a run and
persisted through ProgressStore after every entity-level mutation.

Invariants:
    - entity fact collections only grow (merge is set union)
    - checkpoint blocks never decrease
    - deployment cache has no duplicate address (case-insensitive)

Rules Applied:
    - #11 Pydantic Modeling: explicit models, discriminated unions
    - #10 Python Standards: Modern typing (X | None)
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vendor_sync.config.sources import SourceKey
from vendor_sync.vendors.classification import VendorClassification

STATE_VERSION = 1


# ─── Deployment cache ───────────────────────────────────────────────


class Deployment(BaseModel):
    """Factory에서 발견된 entity 배포 정보."""

    model_config = ConfigDict(frozen=True)

    address: str
    deployment_block: int = Field(..., ge=0)


class BlockRange(BaseModel):
    """Inclusive block range."""

    model_config = ConfigDict(frozen=True)

    from_block: int = Field(..., ge=0)
    to_block: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> BlockRange:
        if self.to_block < self.from_block:
            msg = f"to_block {self.to_block} < from_block {self.from_block}"
            raise ValueError(msg)
        return self

    @property
    def size(self) -> int:
        return self.to_block - self.from_block + 1


# ─── Entity records ─────────────────────────────────────────────────


class RouterRecord(BaseModel):
    """EulerRouter에서 발견된 사실들.

    Attributes:
        adapters: 설정된 oracle adapter 주소 (발견 순서, 중복 없음)
        asset_pairs: "asset0-asset1" → adapter 목록
        vendor_info: adapter → vendor 분류
        resolved_vaults: vault → asset (ResolvedVaultSet)
        config_events_count: 누적 ConfigSet 이벤트 수
        vault_events_count: 누적 ResolvedVaultSet 이벤트 수
    """

    address: str
    deployment_block: int
    adapters: list[str] = Field(default_factory=list)
    asset_pairs: dict[str, list[str]] = Field(default_factory=dict)
    vendor_info: dict[str, VendorClassification] = Field(default_factory=dict)
    resolved_vaults: dict[str, str] = Field(default_factory=dict)
    config_events_count: int = 0
    vault_events_count: int = 0
    last_processed_block: int | None = None
    last_error: str | None = None


class VaultRecord(BaseModel):
    """EVault의 oracle/asset 및 파생 vendor 목록.

    Attributes:
        oracle: vault.oracle() (대부분 EulerRouter 주소)
        asset: vault.asset()
        vendors: asset에 대해 노출된 vendor 이름 (합집합)
        vendor_type: 단일 vendor 이름, "Multiple", "Cross" 또는 "Unknown"
    """

    address: str
    deployment_block: int
    oracle: str | None = None
    asset: str | None = None
    vendors: list[str] = Field(default_factory=list)
    vendor_type: str = "Unknown"
    last_processed_block: int | None = None
    last_error: str | None = None


# ─── Checkpoint ─────────────────────────────────────────────────────


class Checkpoint(BaseModel):
    """Source/entity별 마지막 동기화 블록."""

    factory_blocks: dict[str, int] = Field(default_factory=dict)
    routers: dict[str, int] = Field(default_factory=dict)
    vaults: dict[str, int] = Field(default_factory=dict)

    def factory_block(self, source: SourceKey) -> int | None:
        return self.factory_blocks.get(source.value)

    def advance_factory(self, source: SourceKey, block: int) -> None:
        current = self.factory_blocks.get(source.value)
        if current is None or block > current:
            self.factory_blocks[source.value] = block

    def entity_blocks(self, kind: SourceKey) -> dict[str, int]:
        return self.routers if kind is SourceKey.ROUTER else self.vaults

    def processed_block(self, kind: SourceKey, address: str) -> int | None:
        return self.entity_blocks(kind).get(address)

    def mark_processed(self, kind: SourceKey, address: str, block: int) -> None:
        blocks = self.entity_blocks(kind)
        current = blocks.get(address)
        if current is None or block > current:
            blocks[address] = block


# ─── Root state ─────────────────────────────────────────────────────


class SyncState(BaseModel):
    """전체 동기화 상태 (체크포인트 + entity 캐시 + 미해결 gap)."""

    version: int = STATE_VERSION
    checkpoint: Checkpoint = Field(default_factory=Checkpoint)
    routers: dict[str, RouterRecord] = Field(default_factory=dict)
    vaults: dict[str, VaultRecord] = Field(default_factory=dict)
    gaps: dict[str, list[BlockRange]] = Field(default_factory=dict)

    def records(self, kind: SourceKey) -> dict[str, RouterRecord] | dict[str, VaultRecord]:
        return self.routers if kind is SourceKey.ROUTER else self.vaults

    def find_router(self, address: str) -> RouterRecord | None:
        """Case-insensitive router lookup."""
        record = self.routers.get(address)
        if record is not None:
            return record
        lowered = address.lower()
        for key, candidate in self.routers.items():
            if key.lower() == lowered:
                return candidate
        return None

    # ── gaps ──

    def gaps_for(self, scope: str) -> list[BlockRange]:
        return list(self.gaps.get(scope, []))

    def set_gaps(self, scope: str, ranges: list[BlockRange]) -> None:
        """Replace the open gaps of ``scope`` (sorted, duplicates dropped)."""
        unique = sorted(set(ranges), key=lambda r: (r.from_block, r.to_block))
        if unique:
            self.gaps[scope] = unique
        else:
            self.gaps.pop(scope, None)

    @property
    def open_gap_count(self) -> int:
        return sum(len(v) for v in self.gaps.values())
