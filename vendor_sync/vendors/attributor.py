"""VendorAttributor — oracle/adapter address → vendor classification.

Resolution order for a single address:
    1. known Euler vault                       → Vault
    2. registry lookup (case-insensitive)       → not found: Unresolved
    3. registry entry is the zero address       → EscrowNoOracle
    4. provider label via VENDOR_NAME_RULES     → ExternalVendor(name)
    5. canonical name is the composite marker   → CompositeVendor(legs) or Unresolved

Pure: no I/O, no chain access. The same inputs always classify the same way.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from vendor_sync.chain.abi import ZERO_ADDRESS, same_address
from vendor_sync.vendors.classification import (
    COMPOSITE_LABEL,
    EULER_VAULT_LABEL,
    CompositeVendor,
    EscrowNoOracle,
    ExternalVendor,
    Unresolved,
    Vault,
    VendorClassification,
)
from vendor_sync.vendors.normalization import normalize_vendor_name

if TYPE_CHECKING:
    from vendor_sync.state.models import RouterRecord
    from vendor_sync.vendors.registry import OracleRegistry

REASON_NOT_IN_REGISTRY = "oracle not known"
REASON_NO_LABEL = "no provider label"
REASON_COMPOSITE_LEGS = "composite legs unavailable"


class VendorAttributor:
    """Classifies adapters against the oracle registry and the known-vault set.

    Example:
        >>> attributor = VendorAttributor(registry, known_vaults=["0xVault..."])
        >>> attributor.classify("0xAdapter...")
        ExternalVendor(kind='external', name='Chainlink')
    """

    def __init__(self, registry: OracleRegistry, known_vaults: Iterable[str] = ()) -> None:
        self._registry = registry
        self._known_vaults = {a.lower() for a in known_vaults}

    def is_known_vault(self, address: str) -> bool:
        return address.lower() in self._known_vaults

    def classify(self, address: str) -> VendorClassification:
        """Classify a single oracle/adapter address."""
        if self.is_known_vault(address):
            return Vault()

        entry = self._registry.lookup(address)
        if entry is None:
            return Unresolved(reason=REASON_NOT_IN_REGISTRY)

        if same_address(entry.address, ZERO_ADDRESS):
            return EscrowNoOracle()

        canonical = normalize_vendor_name(entry.provider_label)
        if canonical is None:
            return Unresolved(reason=REASON_NO_LABEL)
        if canonical == EULER_VAULT_LABEL:
            return Vault()
        if canonical == COMPOSITE_LABEL:
            return self._resolve_composite(address)
        return ExternalVendor(name=canonical)

    def _resolve_composite(self, address: str) -> VendorClassification:
        detail = self._registry.composite(address)
        if detail is None or detail.error:
            return Unresolved(reason=REASON_COMPOSITE_LEGS)

        leg_a = normalize_vendor_name(detail.leg_a)
        leg_b = normalize_vendor_name(detail.leg_b)
        if leg_a is None or leg_b is None:
            return Unresolved(reason=REASON_COMPOSITE_LEGS)
        return CompositeVendor(underlying=(leg_a, leg_b))

    def classify_all(self, addresses: Iterable[str]) -> dict[str, VendorClassification]:
        return {address: self.classify(address) for address in addresses}


def vendors_for_asset(router: RouterRecord, asset: str) -> list[str]:
    """Union of vendor names over every adapter configured for ``asset``.

    A pair matches when either side is ``asset``. Composite adapters
    contribute their legs; every other classification contributes its
    label. Order follows first appearance.
    """
    names: dict[str, None] = {}
    for pair_key, adapters in router.asset_pairs.items():
        asset0, _, asset1 = pair_key.partition("-")
        if not (same_address(asset0, asset) or same_address(asset1, asset)):
            continue
        for adapter in adapters:
            classification = router.vendor_info.get(adapter)
            if classification is None:
                continue
            for name in classification.vendor_names():
                names.setdefault(name, None)
    return list(names)


def vendor_type_for(vendors: list[str]) -> str:
    """Summary label for a vault's vendor set."""
    if not vendors:
        return "Unknown"
    if len(vendors) == 1:
        return vendors[0]
    return "Multiple"
