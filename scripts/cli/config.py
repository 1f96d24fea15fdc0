"""CLI configuration: paths and environment overrides."""

import os
from pathlib import Path

# Project root (parent of scripts/)
ROOT = Path(__file__).resolve().parent.parent.parent

LOG_DIR = Path(os.environ.get("TOOL_CLI_LOG_DIR", ROOT / "logs"))
LOG_FILE = LOG_DIR / "tooling_cli.log"
