"""Vendor attribution: oracle registry, name normalization, classification.

Exports:
    - OracleRegistry: scraped adapter table + composite leg details
    - VendorAttributor: address → VendorClassification
    - split_evenly / aggregate_by_vendor: downstream value attribution
"""

from vendor_sync.vendors.attribution import VendorTotal, aggregate_by_vendor, split_evenly
from vendor_sync.vendors.attributor import VendorAttributor, vendor_type_for, vendors_for_asset
from vendor_sync.vendors.classification import (
    CompositeVendor,
    EscrowNoOracle,
    ExternalVendor,
    Unresolved,
    Vault,
    VendorClassification,
)
from vendor_sync.vendors.normalization import VENDOR_NAME_RULES, normalize_vendor_name
from vendor_sync.vendors.registry import CompositeDetail, OracleRegistry, RegistryEntry

__all__ = [
    "VENDOR_NAME_RULES",
    "CompositeDetail",
    "CompositeVendor",
    "EscrowNoOracle",
    "ExternalVendor",
    "OracleRegistry",
    "RegistryEntry",
    "Unresolved",
    "Vault",
    "VendorAttributor",
    "VendorClassification",
    "VendorTotal",
    "aggregate_by_vendor",
    "normalize_vendor_name",
    "split_evenly",
    "vendor_type_for",
    "vendors_for_asset",
]
