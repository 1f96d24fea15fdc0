"""
Tool Kernel - cutting-tool lifecycle cost reconciliation.

A ledger-backed costing core with:
- Tool instance registry and lifecycle state machine
- Append-only usage ledger with monotonic accumulated life
- Provisional cost allocation to work orders at production time
- Retroactive reconciliation of true per-unit cost on retirement
"""

__version__ = "0.1.0"
