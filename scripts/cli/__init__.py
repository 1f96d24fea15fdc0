"""
Tooling CLI -- command-line front end for the tool kernel.

Register catalog items and work orders, create and mount tools, report
production and usage, retire tools, and inspect tool and work order costs.
Every command runs one ToolLifecycleService operation and prints its
result message.

Entry point: python -m scripts.cli <command> [options]
"""

from scripts.cli.main import main

__all__ = ["main"]
