"""Provider label → canonical vendor name.

The scraped provider labels are free text ("Chainlink Data Feeds",
"RedStone Pull", "Cross adapter (Chainlink/Pyth)" ...). They are matched
against an ordered table of (predicate, canonical name) pairs; the first
matching rule wins, so more specific labels must come first ("euler vault"
before anything a vault label might also contain, "cross" after the
vendor names a composite label might mention).
"""

from __future__ import annotations

from collections.abc import Callable

from vendor_sync.vendors.classification import COMPOSITE_LABEL, EULER_VAULT_LABEL

OTHER_VENDOR = "Other"

LabelPredicate = Callable[[str], bool]


def contains(*needles: str) -> LabelPredicate:
    """Predicate matching a lowercased label containing any of ``needles``."""

    def _match(label: str) -> bool:
        return any(needle in label for needle in needles)

    return _match


VENDOR_NAME_RULES: tuple[tuple[LabelPredicate, str], ...] = (
    (contains("euler vault"), EULER_VAULT_LABEL),
    (contains("chainlink"), "Chainlink"),
    (contains("redstone", "red stone"), "RedStone"),
    (contains("pyth"), "Pyth"),
    (contains("pendle"), "Pendle"),
    (contains("chronicle"), "Chronicle"),
    (contains("midas"), "Midas"),
    (contains("resolv"), "Resolv"),
    (contains("idle"), "Idle"),
    (contains("mev capital"), "MEV Capital"),
    (contains("cross"), COMPOSITE_LABEL),
    (contains("fixed rate"), "Fixed Rate"),
    (contains("rate provider"), "Rate Provider"),
    (contains("lido fundamental"), "Lido Fundamental"),
)


def normalize_vendor_name(
    provider_label: str | None,
    rules: tuple[tuple[LabelPredicate, str], ...] = VENDOR_NAME_RULES,
) -> str | None:
    """Map a provider label to its canonical vendor name.

    Returns:
        Canonical name, ``"Other"`` when no rule matches, or None when the
        label is missing/blank (the caller decides what that means).

    Example:
        >>> normalize_vendor_name("Chainlink Data Feeds")
        'Chainlink'
        >>> normalize_vendor_name("Cross")
        'Cross'
    """
    if provider_label is None or not provider_label.strip():
        return None

    label = provider_label.lower()
    for predicate, canonical in rules:
        if predicate(label):
            return canonical
    return OTHER_VENDOR
