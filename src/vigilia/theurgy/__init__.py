"""
Theurgy - Command implementations for the vigilia CLI.

Each module corresponds to top-level CLI commands:
- watch:  Install a filter and stream its changes (plus `uninstall`)
- call:   Send a raw JSON-RPC call
- status: Show node status
"""
