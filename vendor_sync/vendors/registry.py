"""Oracle registry and composite-oracle detail table.

Both tables are produced by earlier, external stages (the oracle
dashboard scraper and the cross-adapter analysis) and are read-only here.

Accepted shapes:
    registry:  [{"address" | "addressLink", "providerLabel" | "providerInfo", "provider"?}, ...]
    composite: {"details": [{"crossAddress", "baseCrossName", "crossQuoteName", "error"?}, ...]}
               or a bare list of the same objects
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from vendor_sync.core.exceptions import RegistryError

if TYPE_CHECKING:
    from pathlib import Path

_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")


class RegistryEntry(BaseModel):
    """Oracle registry 항목."""

    model_config = ConfigDict(frozen=True)

    address: str
    provider_label: str | None = None
    provider: str | None = None


class CompositeDetail(BaseModel):
    """Cross adapter의 두 leg 정보."""

    model_config = ConfigDict(frozen=True)

    composite_address: str
    leg_a: str | None = None
    leg_b: str | None = None
    error: str | None = None


def extract_address(value: str | None) -> str | None:
    """Pull the first 20-byte hex address out of a string (plain or explorer link)."""
    if not value:
        return None
    match = _ADDRESS_RE.search(value)
    return match.group(0) if match else None


def parse_registry_entry(raw: dict[str, Any]) -> RegistryEntry | None:
    address = extract_address(raw.get("address")) or extract_address(raw.get("addressLink"))
    if address is None:
        return None
    return RegistryEntry(
        address=address,
        provider_label=raw.get("providerLabel") or raw.get("providerInfo"),
        provider=raw.get("provider"),
    )


def parse_composite_detail(raw: dict[str, Any]) -> CompositeDetail | None:
    address = extract_address(raw.get("compositeAddress")) or extract_address(raw.get("crossAddress"))
    if address is None:
        return None
    return CompositeDetail(
        composite_address=address,
        leg_a=raw.get("legAName") or raw.get("baseCrossName"),
        leg_b=raw.get("legBName") or raw.get("crossQuoteName"),
        error=raw.get("error"),
    )


class OracleRegistry:
    """Case-insensitive lookup over registry entries and composite details.

    When several entries share an address, the first one wins.
    """

    def __init__(
        self,
        entries: list[RegistryEntry] | None = None,
        composites: list[CompositeDetail] | None = None,
    ) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        for entry in entries or []:
            self._entries.setdefault(entry.address.lower(), entry)
        self._composites: dict[str, CompositeDetail] = {}
        for detail in composites or []:
            self._composites.setdefault(detail.composite_address.lower(), detail)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, address: str) -> RegistryEntry | None:
        return self._entries.get(address.lower())

    def composite(self, address: str) -> CompositeDetail | None:
        return self._composites.get(address.lower())

    @property
    def composite_count(self) -> int:
        return len(self._composites)

    @classmethod
    def from_raw(cls, registry: list[dict[str, Any]], composites: Any) -> OracleRegistry:
        """Build from already-parsed JSON payloads."""
        if isinstance(composites, dict):
            composites = composites.get("details") or []
        entries = [e for e in (parse_registry_entry(r) for r in registry) if e is not None]
        details = [d for d in (parse_composite_detail(r) for r in composites or []) if d is not None]
        skipped = len(registry) - len(entries)
        if skipped:
            logger.debug("Oracle registry: skipped {} entries without an address", skipped)
        return cls(entries, details)

    @classmethod
    def from_files(cls, registry_path: Path, composite_path: Path) -> OracleRegistry:
        """Load both tables from disk.

        Raises:
            RegistryError: a file is missing or is not valid JSON
        """
        registry = _read_json(registry_path)
        composites = _read_json(composite_path)
        if not isinstance(registry, list):
            raise RegistryError(
                "Oracle registry must be a JSON list",
                context={"path": str(registry_path)},
            )
        instance = cls.from_raw(registry, composites)
        logger.info(
            "Loaded oracle registry: {} adapters, {} composite details",
            len(instance),
            instance.composite_count,
        )
        return instance


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise RegistryError(
            f"Registry file not found: {path}. Run the oracle scraper and cross-adapter analysis first.",
            context={"path": str(path)},
        ) from e
    except (OSError, json.JSONDecodeError) as e:
        raise RegistryError(
            f"Failed to read registry file: {path}",
            context={"path": str(path), "error": str(e)},
        ) from e
