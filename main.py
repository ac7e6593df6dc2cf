"""Euler Vendor Sync - Entry Point.

Incremental discovery of EulerRouter / EVault deployments and oracle
vendor attribution.

Usage:
    python main.py run
    python main.py routers
    python main.py vaults
    python main.py status
    python main.py classify 0x...
    python main.py reset --yes
"""

from vendor_sync.cli.app import app

if __name__ == "__main__":
    app()
