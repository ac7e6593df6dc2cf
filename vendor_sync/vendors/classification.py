"""Vendor classification — tagged variant over ``kind``.

    Vault | ExternalVendor(name) | EscrowNoOracle | CompositeVendor(underlying) | Unresolved(reason)

The union is persisted as-is inside router records (discriminated on
``kind``), so classification survives a round-trip through the progress
file without losing its variant.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

EULER_VAULT_LABEL = "Euler Vault"
ESCROW_LABEL = "no oracle (escrow)"
COMPOSITE_LABEL = "Cross"
UNRESOLVED_LABEL = "Unknown"


class _Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def label(self) -> str:
        raise NotImplementedError

    def vendor_names(self) -> tuple[str, ...]:
        """Names this classification contributes to an entity's vendor set."""
        return (self.label,)


class Vault(_Classification):
    """Adapter is itself an Euler vault (priced via the vault's own exchange rate)."""

    kind: Literal["vault"] = "vault"

    @property
    def label(self) -> str:
        return EULER_VAULT_LABEL


class ExternalVendor(_Classification):
    """Adapter backed by an external price vendor (Chainlink, RedStone, ...)."""

    kind: Literal["external"] = "external"
    name: str

    @property
    def label(self) -> str:
        return self.name


class EscrowNoOracle(_Classification):
    """Zero address configured in place of a price source."""

    kind: Literal["escrow"] = "escrow"

    @property
    def label(self) -> str:
        return ESCROW_LABEL


class CompositeVendor(_Classification):
    """Cross adapter resolved into its two underlying legs."""

    kind: Literal["composite"] = "composite"
    underlying: tuple[str, str]

    @property
    def label(self) -> str:
        return COMPOSITE_LABEL

    def vendor_names(self) -> tuple[str, ...]:
        # dict.fromkeys keeps leg order while dropping a repeated vendor
        return tuple(dict.fromkeys(self.underlying))


class Unresolved(_Classification):
    """Classification could not be determined; ``reason`` says why."""

    kind: Literal["unresolved"] = "unresolved"
    reason: str = "oracle not known"

    @property
    def label(self) -> str:
        return UNRESOLVED_LABEL


VendorClassification = Annotated[
    Vault | ExternalVendor | EscrowNoOracle | CompositeVendor | Unresolved,
    Field(discriminator="kind"),
]
