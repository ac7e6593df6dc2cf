"""Even-split value attribution across a vault's vendors.

A vault exposed to N vendors contributes value / N to each. Shares are
truncated to ``quantum`` and the last vendor absorbs the remainder, so
the shares always sum back to the original value exactly.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import ROUND_DOWN, Decimal, localcontext
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from vendor_sync.state.models import VaultRecord

DEFAULT_QUANTUM = Decimal("0.000001")


class VendorTotal(BaseModel):
    """Vendor별 누적 value."""

    vendor: str
    total_value: Decimal = Decimal(0)
    vault_count: int = 0
    vaults: dict[str, Decimal] = Field(default_factory=dict)


def split_evenly(
    value: Decimal,
    vendors: Sequence[str],
    quantum: Decimal = DEFAULT_QUANTUM,
) -> dict[str, Decimal]:
    """Split ``value`` evenly across ``vendors``.

    Example:
        >>> split_evenly(Decimal("100"), ["Chainlink", "Pyth", "RedStone"])
        {'Chainlink': Decimal('33.333333'), 'Pyth': Decimal('33.333333'), 'RedStone': Decimal('33.333334')}
    """
    unique = list(dict.fromkeys(vendors))
    if not unique:
        return {}

    with localcontext() as ctx:
        ctx.prec = 60
        share = (value / len(unique)).quantize(quantum, rounding=ROUND_DOWN)
        shares = dict.fromkeys(unique[:-1], share)
        shares[unique[-1]] = value - share * (len(unique) - 1)
    return shares


def aggregate_by_vendor(
    vaults: Mapping[str, VaultRecord],
    values: Mapping[str, Decimal],
    quantum: Decimal = DEFAULT_QUANTUM,
) -> list[VendorTotal]:
    """Sum per-vault values into per-vendor totals (largest first).

    Vaults without a value, with a zero value, or without vendors are
    skipped. ``values`` is keyed by vault address.
    """
    totals: dict[str, VendorTotal] = {}
    for address, vault in vaults.items():
        value = values.get(address)
        if not value or not vault.vendors:
            continue
        for vendor, share in split_evenly(value, vault.vendors, quantum).items():
            total = totals.setdefault(vendor, VendorTotal(vendor=vendor))
            total.total_value += share
            total.vault_count += 1
            total.vaults[address] = share

    return sorted(totals.values(), key=lambda t: (-t.total_value, t.vendor))
