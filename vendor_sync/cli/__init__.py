"""CLI interface using Typer.

Available commands:
    - run / routers / vaults: Sync runs (full, router-only, vault-only)
    - status: Checkpoints, errors, open gaps
    - classify: Offline oracle classification
    - reset: Clear sync state

Usage:
    uv run vendor-sync run
    uv run vendor-sync status
"""

from vendor_sync.cli.app import app


def main() -> None:
    """Entry point for the ``vendor-sync`` console script."""
    app()


__all__ = ["app", "main"]
