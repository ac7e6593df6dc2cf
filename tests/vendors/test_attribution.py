"""Tests for vendor_sync/vendors/attribution.py — even-split value attribution."""

from __future__ import annotations

from decimal import Decimal

import pytest

from tests.conftest import addr
from vendor_sync.state.models import VaultRecord
from vendor_sync.vendors.attribution import aggregate_by_vendor, split_evenly

VENDORS = ["Chainlink", "Pyth", "RedStone", "Chronicle", "Pendle", "Midas", "Idle"]


class TestSplitEvenly:
    @pytest.mark.parametrize("n", range(1, len(VENDORS) + 1))
    @pytest.mark.parametrize("value", [Decimal("100"), Decimal("1234567.891011"), Decimal("0.000001"), Decimal("1e-9")])
    def test_shares_sum_exactly(self, n: int, value: Decimal) -> None:
        shares = split_evenly(value, VENDORS[:n])
        assert len(shares) == n
        assert sum(shares.values(), Decimal(0)) == value

    def test_three_way_split(self) -> None:
        shares = split_evenly(Decimal("100"), ["Chainlink", "Pyth", "RedStone"])
        assert shares == {
            "Chainlink": Decimal("33.333333"),
            "Pyth": Decimal("33.333333"),
            "RedStone": Decimal("33.333334"),
        }

    def test_duplicate_vendors_counted_once(self) -> None:
        assert split_evenly(Decimal("10"), ["Pyth", "Pyth"]) == {"Pyth": Decimal("10")}

    def test_no_vendors(self) -> None:
        assert split_evenly(Decimal("10"), []) == {}


class TestAggregateByVendor:
    def test_totals_sorted_by_value(self) -> None:
        vaults = {
            addr(1): VaultRecord(address=addr(1), deployment_block=1, vendors=["Chainlink", "Pyth"]),
            addr(2): VaultRecord(address=addr(2), deployment_block=1, vendors=["Pyth"]),
            addr(3): VaultRecord(address=addr(3), deployment_block=1, vendors=[]),
            addr(4): VaultRecord(address=addr(4), deployment_block=1, vendors=["RedStone"]),
        }
        values = {addr(1): Decimal("100"), addr(2): Decimal("30"), addr(3): Decimal("500")}

        totals = aggregate_by_vendor(vaults, values)

        assert [(t.vendor, t.total_value, t.vault_count) for t in totals] == [
            ("Pyth", Decimal("80"), 2),
            ("Chainlink", Decimal("50"), 1),
        ]
        assert totals[0].vaults == {addr(1): Decimal("50"), addr(2): Decimal("30")}
